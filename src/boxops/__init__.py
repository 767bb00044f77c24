"""Client library for driving remotely-managed box instances.

Quick start::

    import asyncio

    from boxops import ClientSettings, ControlPlaneClient, Variable

    async def redeploy() -> None:
        client = ControlPlaneClient.from_settings(ClientSettings.from_env())
        monitor = await client.reconfigure("i-123", [Variable("PORT", "9090")])
        await monitor.wait_for_done(timeout_minutes=30)

    asyncio.run(redeploy())
"""

from .http import (
    AuthenticationError,
    BoxOpsError,
    ClientError,
    NotFoundError,
    RequestExecutor,
    SharedTransport,
    TransportError,
    ValidationError,
)
from .models import (
    FINISH_STATES,
    OFF_OPERATIONS,
    ON_OPERATIONS,
    SHUTDOWN_OPERATIONS,
    TERMINATE_OPERATIONS,
    Instance,
    InstanceState,
    Operation,
    Variable,
)
from .monitoring import (
    CancellationToken,
    DoneMonitor,
    IncompleteError,
    InstanceUnavailableError,
    Monitor,
    OperationCancelledError,
    OperationTimeoutError,
    ProgressMonitor,
    ResourceDisappearedError,
    UnexpectedOperationError,
    wait_for_all,
)
from .resources import ControlPlaneClient
from .settings import ClientSettings, SettingsError
from .variables import BoxStack, BoxStackResolver, MergeResult, merge_variables

__all__ = [
    "AuthenticationError",
    "BoxOpsError",
    "BoxStack",
    "BoxStackResolver",
    "CancellationToken",
    "ClientError",
    "ClientSettings",
    "ControlPlaneClient",
    "DoneMonitor",
    "FINISH_STATES",
    "IncompleteError",
    "Instance",
    "InstanceState",
    "InstanceUnavailableError",
    "MergeResult",
    "Monitor",
    "NotFoundError",
    "OFF_OPERATIONS",
    "ON_OPERATIONS",
    "Operation",
    "OperationCancelledError",
    "OperationTimeoutError",
    "ProgressMonitor",
    "RequestExecutor",
    "ResourceDisappearedError",
    "SHUTDOWN_OPERATIONS",
    "SettingsError",
    "SharedTransport",
    "TERMINATE_OPERATIONS",
    "TransportError",
    "UnexpectedOperationError",
    "ValidationError",
    "Variable",
    "merge_variables",
    "wait_for_all",
]
