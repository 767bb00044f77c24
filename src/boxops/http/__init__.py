"""HTTP layer: pooled transport, authenticated executor, error hierarchy."""

from .errors import (
    AuthenticationError,
    BoxOpsError,
    ClientError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from .executor import RequestExecutor
from .transport import SharedTransport

__all__ = [
    "AuthenticationError",
    "BoxOpsError",
    "ClientError",
    "NotFoundError",
    "RequestExecutor",
    "SharedTransport",
    "TransportError",
    "ValidationError",
]
