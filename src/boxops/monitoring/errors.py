"""Terminal outcomes of a monitored operation other than success."""

from __future__ import annotations

from typing import Iterable

from ..http.errors import BoxOpsError


class IncompleteError(BoxOpsError):
    """The awaited operation did not complete as expected."""

    def __init__(self, resource_url: str, message: str) -> None:
        self.resource_url = resource_url
        super().__init__(message)


class InstanceUnavailableError(IncompleteError):
    """The instance ended up in the ``unavailable`` state."""

    def __init__(self, resource_url: str) -> None:
        super().__init__(resource_url, f"The instance at {resource_url} is unavailable")


class UnexpectedOperationError(IncompleteError):
    """A different operation than the awaited one finished on the instance."""

    def __init__(self, resource_url: str, operation: str, expected: Iterable[str]) -> None:
        self.operation = operation
        self.expected = frozenset(expected)
        super().__init__(
            resource_url,
            f"Unexpected operation {operation!r} has been performed for instance "
            f"{resource_url} (expected one of {sorted(self.expected)})",
        )


class ResourceDisappearedError(IncompleteError):
    """The monitored instance no longer exists."""

    def __init__(self, resource_url: str) -> None:
        super().__init__(resource_url, f"The instance {resource_url} cannot be found")


class OperationTimeoutError(IncompleteError):
    """The operation was still running when the wait budget ran out."""

    def __init__(self, resource_url: str, timeout_minutes: float, last_state: str) -> None:
        self.timeout_minutes = timeout_minutes
        self.last_state = last_state
        super().__init__(
            resource_url,
            f"The instance at {resource_url} is not ready after waiting for "
            f"{timeout_minutes} minutes. Current instance state: {last_state}",
        )


class OperationCancelledError(IncompleteError):
    """Waiting was cancelled through a CancellationToken."""

    def __init__(self, resource_url: str) -> None:
        super().__init__(resource_url, f"Waiting for {resource_url} was cancelled")
