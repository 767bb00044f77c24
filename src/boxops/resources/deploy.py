"""Deploy request shaping.

Profiles carry a schema URL such as
``https://example.com/schemas/2014-06-10/profile``. The dated segment picks
one of two request layouts:

  modern (dated after 2014-05-23)
      overrides travel as a top-level ``variables`` array and the instance
      count is set on the profile's nested service profile.
  legacy (dated 2014-05-23 or earlier)
      overrides are spliced into the main sub-instance's variables and the
      request uses the ``deploy-service-request`` schema.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from ..http.errors import BoxOpsError
from ..models import Variable

SCHEMA_CUTOFF = "2014-05-23"
SCHEMAS_SEGMENT = "/schemas/"

MODERN_REQUEST_SCHEMA = "deploy-instance-request"
LEGACY_REQUEST_SCHEMA = "deploy-service-request"

logger = logging.getLogger(__name__)


class DeploySchema(StrEnum):
    MODERN = "modern"
    LEGACY = "legacy"


class SchemaError(ValueError, BoxOpsError):
    """The profile's schema URL has no recognisable version segment."""


@dataclass(frozen=True, slots=True)
class ProfileSchema:
    """A schema URL split into ``{base}{version}/{name}``."""

    base: str
    version: str

    @classmethod
    def parse(cls, url: str) -> ProfileSchema:
        idx = url.find(SCHEMAS_SEGMENT)
        if idx < 0:
            raise SchemaError(f"not a schema url: {url!r}")
        base = url[: idx + len(SCHEMAS_SEGMENT)]
        version, sep, _ = url[len(base):].partition("/")
        if not version or not sep:
            raise SchemaError(f"schema url has no version: {url!r}")
        return cls(base=base, version=version)

    @property
    def strategy(self) -> DeploySchema:
        return select_schema(self.version)

    def request_schema(self, name: str) -> str:
        return f"{self.base}{self.version}/{name}"


def select_schema(version: str) -> DeploySchema:
    """Dated versions compare lexicographically (ISO dates)."""
    return DeploySchema.MODERN if version > SCHEMA_CUTOFF else DeploySchema.LEGACY


@dataclass(frozen=True, slots=True)
class DeployOptions:
    workspace_id: str
    environment: str
    instances: int = 1
    variables: tuple[Variable, ...] = ()
    box_version: str | None = None


def _set_instance_count(service_profile: dict[str, Any] | None, instances: int) -> None:
    if service_profile is not None and "instances" in service_profile:
        service_profile["instances"] = instances


def build_modern_request(
    profile: dict[str, Any],
    schema: ProfileSchema,
    options: DeployOptions,
) -> dict[str, Any]:
    if options.box_version is not None:
        box = profile.get("box")
        if box is None:
            logger.warning(
                "Profile has no box section, box version not applied",
                extra={"box_version": options.box_version},
            )
        else:
            box["version"] = options.box_version
    _set_instance_count(profile.get("profile"), options.instances)
    return {
        "schema": schema.request_schema(MODERN_REQUEST_SCHEMA),
        "variables": [var.to_json() for var in options.variables],
    }


def build_legacy_request(
    profile: dict[str, Any],
    schema: ProfileSchema,
    options: DeployOptions,
) -> dict[str, Any]:
    main_instance = profile["instances"][0]
    declared: list[dict[str, Any]] = main_instance.setdefault("variables", [])
    positions = {
        (doc.get("name"), doc.get("scope") or ""): pos for pos, doc in enumerate(declared)
    }
    for var in options.variables:
        pos = positions.get(var.key)
        if pos is None:
            positions[var.key] = len(declared)
            declared.append(var.to_json())
        else:
            declared[pos]["value"] = var.value
    _set_instance_count(main_instance.get("profile"), options.instances)
    return {"schema": schema.request_schema(LEGACY_REQUEST_SCHEMA)}


RequestBuilder = Callable[[dict[str, Any], ProfileSchema, DeployOptions], dict[str, Any]]

REQUEST_BUILDERS: Mapping[DeploySchema, RequestBuilder] = MappingProxyType(
    {
        DeploySchema.MODERN: build_modern_request,
        DeploySchema.LEGACY: build_legacy_request,
    }
)


def build_deploy_request(
    profile: Mapping[str, Any],
    *,
    workspace_id: str,
    environment: str,
    instances: int = 1,
    variables: Iterable[Variable] = (),
    box_version: str | None = None,
) -> dict[str, Any]:
    """Build the ``POST /services/instances`` body for *profile*.

    The profile document is copied; the caller's mapping is not modified.
    """
    doc = copy.deepcopy(dict(profile))
    schema = ProfileSchema.parse(doc.get("schema", ""))
    options = DeployOptions(
        workspace_id=workspace_id,
        environment=environment,
        instances=instances,
        variables=tuple(variables),
        box_version=box_version,
    )
    request = REQUEST_BUILDERS[schema.strategy](doc, schema, options)
    request["environment"] = environment
    request["profile"] = doc
    request["owner"] = workspace_id
    return request
