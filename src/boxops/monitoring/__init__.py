"""Completion tracking for asynchronous instance operations."""

from .errors import (
    IncompleteError,
    InstanceUnavailableError,
    OperationCancelledError,
    OperationTimeoutError,
    ResourceDisappearedError,
    UnexpectedOperationError,
)
from .progress import (
    CancellationToken,
    DoneMonitor,
    Monitor,
    Outcome,
    ProgressMonitor,
    evaluate,
    wait_for_all,
)

__all__ = [
    "CancellationToken",
    "DoneMonitor",
    "IncompleteError",
    "InstanceUnavailableError",
    "Monitor",
    "OperationCancelledError",
    "OperationTimeoutError",
    "Outcome",
    "ProgressMonitor",
    "ResourceDisappearedError",
    "UnexpectedOperationError",
    "evaluate",
    "wait_for_all",
]
