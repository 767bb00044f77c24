"""Client configuration settings.

ClientSettings is the single configuration object accepted by
``ControlPlaneClient.from_settings()``. It is a plain dataclass (not
env-coupled) so tests can inject config without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urlparse

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class SettingsError(ValueError):
    """Raised when client configuration cannot be parsed."""


@dataclass(frozen=True, slots=True)
class ClientSettings:
    """Configuration for talking to one control-plane endpoint."""

    # ── Endpoint / credentials ─────────────────────────────────────
    endpoint_url: str = ""
    """Base URL of the control plane, e.g. https://boxes.example.com."""

    username: str = ""
    """Account email used for the token exchange."""

    password: str = ""
    """Account password. Never log this."""

    # ── Transport ──────────────────────────────────────────────────
    verify_tls: bool = True
    """Validate server certificates. Disabling is an explicit opt-in."""

    ca_bundle: str | None = None
    """Optional CA bundle path used instead of the system trust store."""

    timeout_seconds: float = 30.0
    """Per-request network timeout."""

    # ── Behaviour ──────────────────────────────────────────────────
    poll_interval_seconds: float = 1.0
    """Sleep between progress-monitor polls."""

    max_ids_per_request: int = 800
    """Upper bound of ids sent in one ``?ids=`` lookup (URL length)."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "endpoint_url", self.endpoint_url.strip().rstrip("/"))

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.endpoint_url:
            errors.append("endpoint_url is required")
        elif urlparse(self.endpoint_url).scheme not in ("http", "https"):
            errors.append(f"endpoint_url must be http(s): {self.endpoint_url!r}")
        if not self.username:
            errors.append("username is required")
        if not self.password:
            errors.append("password is required")
        if self.timeout_seconds <= 0:
            errors.append("timeout_seconds must be > 0")
        if self.poll_interval_seconds <= 0:
            errors.append("poll_interval_seconds must be > 0")
        if self.max_ids_per_request < 1:
            errors.append("max_ids_per_request must be >= 1")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ClientSettings:
        """Build settings from environment variables.

        This is a convenience factory for the CLI. Tests should construct
        ClientSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        return cls(
            endpoint_url=env.get("BOXOPS_ENDPOINT_URL", ""),
            username=env.get("BOXOPS_USERNAME", ""),
            password=env.get("BOXOPS_PASSWORD", ""),
            verify_tls=_parse_bool(env, "BOXOPS_VERIFY_TLS", True),
            ca_bundle=env.get("BOXOPS_CA_BUNDLE") or None,
            timeout_seconds=_parse_number(env, "BOXOPS_TIMEOUT_SECONDS", 30.0, float),
            poll_interval_seconds=_parse_number(
                env, "BOXOPS_POLL_INTERVAL_SECONDS", 1.0, float
            ),
            max_ids_per_request=_parse_number(env, "BOXOPS_MAX_IDS_PER_REQUEST", 800, int),
        )


def _parse_bool(env: dict[str, str], key: str, default: bool) -> bool:
    raw = env.get(key, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise SettingsError(f"{key} must be a boolean, got {raw!r}")


def _parse_number(env: dict[str, str], key: str, default, cast):
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise SettingsError(f"{key} must be a number, got {raw!r}") from exc
