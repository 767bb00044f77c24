"""Progress monitoring for asynchronous instance operations.

The server never pushes completion. A monitor captures the instance's
``updated`` value when the operation is submitted and then polls the
instance until that value moves and the instance settles in a finish state.
Outcomes are derived from polled state only:

  pending              updated unchanged, or state still processing
  done                 finish state and an accepted operation
  unavailable          state ``unavailable`` (fatal, regardless of operation)
  unexpected operation finish state but another operation completed (fatal)
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import StrEnum
from typing import Any, Iterable, Mapping, Protocol

from ..http.errors import NotFoundError
from ..http.executor import RequestExecutor
from ..models import FINISH_STATES, Instance, InstanceState
from .errors import (
    InstanceUnavailableError,
    OperationCancelledError,
    OperationTimeoutError,
    ResourceDisappearedError,
    UnexpectedOperationError,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 1.0


class Outcome(StrEnum):
    PENDING = "pending"
    DONE = "done"
    UNAVAILABLE = "unavailable"
    UNEXPECTED_OPERATION = "unexpected_operation"


def evaluate(
    instance: Instance,
    *,
    baseline_updated: Any,
    operations: frozenset[str] | None,
) -> Outcome:
    """Classify one polled instance snapshot against a monitoring session."""
    if instance.updated == baseline_updated or instance.state not in FINISH_STATES:
        return Outcome.PENDING
    if instance.state == InstanceState.UNAVAILABLE:
        return Outcome.UNAVAILABLE
    if operations is not None and instance.operation not in operations:
        return Outcome.UNEXPECTED_OPERATION
    return Outcome.DONE


class CancellationToken:
    """Cooperative cancellation for ``wait_for_done`` loops."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to *seconds*; return True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True


class Monitor(Protocol):
    """Anything the caller can wait on for one submitted operation."""

    @property
    def resource_url(self) -> str: ...

    async def is_done(self) -> bool: ...

    async def wait_for_done(
        self,
        timeout_minutes: float = 0,
        *,
        cancel: CancellationToken | None = None,
    ) -> None: ...


class ProgressMonitor:
    """Polls one instance until the submitted operation concludes."""

    def __init__(
        self,
        executor: RequestExecutor,
        resource_url: str,
        operations: Iterable[str] | None,
        baseline_updated: Any,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._executor = executor
        self._resource_url = resource_url
        self._operations = frozenset(operations) if operations is not None else None
        self._baseline = baseline_updated
        self._poll_interval = poll_interval_seconds
        self._creation_time = time.time()

    @property
    def resource_url(self) -> str:
        return self._resource_url

    @property
    def operations(self) -> frozenset[str] | None:
        return self._operations

    @property
    def baseline_updated(self) -> Any:
        return self._baseline

    @property
    def creation_time(self) -> float:
        return self._creation_time

    async def fetch_instance(self) -> Instance:
        try:
            doc: Mapping[str, Any] = await self._executor.get_json(self._resource_url)
        except NotFoundError as exc:
            raise ResourceDisappearedError(self._resource_url) from exc
        return Instance.from_json(doc)

    def check(self, instance: Instance) -> bool:
        """Return True when *instance* shows the operation completed.

        Raises:
            InstanceUnavailableError: the instance is unavailable.
            UnexpectedOperationError: another operation completed.
        """
        outcome = evaluate(
            instance,
            baseline_updated=self._baseline,
            operations=self._operations,
        )
        if outcome is Outcome.UNAVAILABLE:
            raise InstanceUnavailableError(self._resource_url)
        if outcome is Outcome.UNEXPECTED_OPERATION:
            raise UnexpectedOperationError(
                self._resource_url, instance.operation, self._operations or ()
            )
        return outcome is Outcome.DONE

    async def is_done(self) -> bool:
        return self.check(await self.fetch_instance())

    async def wait_for_done(
        self,
        timeout_minutes: float = 0,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Poll until done; ``timeout_minutes == 0`` waits indefinitely.

        Raises:
            OperationTimeoutError: still not done once the budget elapsed
                (after one final check).
            OperationCancelledError: *cancel* was triggered.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_minutes * 60 if timeout_minutes else None

        while True:
            if cancel is not None and cancel.cancelled:
                raise OperationCancelledError(self._resource_url)
            if await self.is_done():
                logger.info("Operation completed", extra={"resource_url": self._resource_url})
                return

            delay = self._poll_interval
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                delay = min(delay, remaining)

            if cancel is not None:
                if await cancel.sleep(delay):
                    raise OperationCancelledError(self._resource_url)
            else:
                await asyncio.sleep(delay)

        instance = await self.fetch_instance()
        if not self.check(instance):
            logger.warning(
                "Operation timed out",
                extra={
                    "resource_url": self._resource_url,
                    "timeout_minutes": timeout_minutes,
                    "state": instance.state,
                },
            )
            raise OperationTimeoutError(self._resource_url, timeout_minutes, instance.state)


class DoneMonitor:
    """A monitor for an operation that needed no server-side work."""

    def __init__(self, resource_url: str) -> None:
        self._resource_url = resource_url
        self._creation_time = time.time()

    @property
    def resource_url(self) -> str:
        return self._resource_url

    @property
    def creation_time(self) -> float:
        return self._creation_time

    async def is_done(self) -> bool:
        return True

    async def wait_for_done(
        self,
        timeout_minutes: float = 0,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        return None


async def wait_for_all(
    monitors: Iterable[Monitor],
    timeout_minutes: float = 0,
    *,
    cancel: CancellationToken | None = None,
) -> None:
    """Wait on several monitors concurrently, one task each.

    The first failure cancels the remaining waits and is re-raised.
    """
    tasks = [
        asyncio.ensure_future(m.wait_for_done(timeout_minutes, cancel=cancel))
        for m in monitors
    ]
    if not tasks:
        return
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
