"""Typed operations against the instance control-plane API.

Reads return decoded JSON (instances as ``Instance`` snapshots). Every
mutating operation that the server completes asynchronously returns a
monitor the caller awaits; see ``boxops.monitoring``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence
from urllib.parse import quote

import httpx

from ..http.errors import require
from ..http.executor import RequestExecutor
from ..http.transport import SharedTransport
from ..models import (
    ON_OPERATIONS,
    SHUTDOWN_OPERATIONS,
    TERMINATE_OPERATIONS,
    Instance,
    InstanceState,
    Operation,
    Variable,
)
from ..monitoring.progress import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DoneMonitor,
    Monitor,
    ProgressMonitor,
)
from ..settings import ClientSettings, SettingsError
from ..variables.box_stack import BoxStack, BoxStackResolver
from ..variables.merge import apply_overrides
from .deploy import build_deploy_request
from .urls import instance_url

logger = logging.getLogger(__name__)

DEFAULT_MAX_IDS_PER_REQUEST = 800

_COLLABORATOR_ROLE = "collaborator"


def _segment(value: str) -> str:
    return quote(value, safe="")


def choose_terminate_operation(instance: Instance) -> str:
    """Graceful ``terminate`` only from a clean on/terminated state."""
    graceful = (
        instance.state == InstanceState.DONE and instance.operation in ON_OPERATIONS
    ) or (
        instance.state == InstanceState.UNAVAILABLE
        and instance.operation == Operation.TERMINATE
    )
    return "terminate" if graceful else "force_terminate"


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ControlPlaneClient:
    """Workspace, box, profile and instance operations."""

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_ids_per_request: int = DEFAULT_MAX_IDS_PER_REQUEST,
    ) -> None:
        if max_ids_per_request < 1:
            raise ValueError("max_ids_per_request must be >= 1")
        self._executor = executor
        self._poll_interval = poll_interval_seconds
        self._max_ids = max_ids_per_request
        self.box_stacks = BoxStackResolver(executor)

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        *,
        transport: SharedTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> ControlPlaneClient:
        """Build a client; pass one *transport* to share its pool."""
        errors = settings.validate()
        if errors:
            raise SettingsError("; ".join(errors))
        if transport is None and http_client is None:
            transport = SharedTransport(
                verify_tls=settings.verify_tls,
                ca_bundle=settings.ca_bundle,
            )
        executor = RequestExecutor(
            endpoint_url=settings.endpoint_url,
            username=settings.username,
            password=settings.password,
            transport=transport,
            http_client=http_client,
            timeout_seconds=settings.timeout_seconds,
        )
        return cls(
            executor,
            poll_interval_seconds=settings.poll_interval_seconds,
            max_ids_per_request=settings.max_ids_per_request,
        )

    @property
    def endpoint_url(self) -> str:
        return self._executor.endpoint_url

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def instance_url(self, instance_id: str) -> str:
        return instance_url(self.endpoint_url, instance_id)

    async def connect(self) -> None:
        """Authenticate eagerly instead of on the first request."""
        await self._executor.authenticate()

    # ── Reads ────────────────────────────────────────────────────

    async def get_workspaces(self) -> list[dict[str, Any]]:
        return await self._executor.get_json("/services/workspaces")

    async def get_boxes(self, workspace_id: str) -> list[dict[str, Any]]:
        require(workspace_id, "workspace_id")
        return await self._executor.get_json(
            f"/services/workspaces/{_segment(workspace_id)}/boxes"
        )

    async def get_box(self, box_id: str) -> dict[str, Any]:
        require(box_id, "box_id")
        return await self._executor.get_json(f"/services/boxes/{_segment(box_id)}")

    async def get_box_versions(self, box_id: str) -> list[dict[str, Any]]:
        require(box_id, "box_id")
        return await self._executor.get_json(f"/services/boxes/{_segment(box_id)}/versions")

    async def get_box_stack(self, box_id: str) -> BoxStack:
        return await self.box_stacks.for_box(box_id)

    async def get_instance_box_stack(self, instance_id: str) -> BoxStack:
        return await self.box_stacks.for_instance(await self.get_instance(instance_id))

    async def _can_change(self, workspace_id: str, box_id: str) -> bool:
        box = await self.get_box(box_id)
        if box.get("owner") == workspace_id:
            return True
        return any(
            member.get("workspace") == workspace_id
            and member.get("role") == _COLLABORATOR_ROLE
            for member in box.get("members") or ()
        )

    async def get_profiles(self, workspace_id: str, box_id: str) -> list[dict[str, Any]]:
        """Profiles of *box_id* usable from *workspace_id*.

        A read-only box (the workspace neither owns it nor collaborates on
        it) may also have profiles bound to its published versions; those
        are included too.
        """
        require(workspace_id, "workspace_id")
        require(box_id, "box_id")
        path = f"/services/workspaces/{_segment(workspace_id)}/profiles"
        profiles = list(await self._executor.get_json(path, params={"box_version": box_id}))

        if not await self._can_change(workspace_id, box_id):
            versions = await self.get_box_versions(box_id)
            version_ids = {version["id"] for version in versions}
            if version_ids:
                for profile in await self._executor.get_json(path):
                    if (profile.get("box") or {}).get("version") in version_ids:
                        profiles.append(profile)

        return profiles

    async def get_profile(self, profile_id: str) -> dict[str, Any]:
        require(profile_id, "profile_id")
        return await self._executor.get_json(f"/services/profiles/{_segment(profile_id)}")

    async def get_instance(self, instance_id: str) -> Instance:
        require(instance_id, "instance_id")
        return Instance.from_json(await self._executor.get_json(self.instance_url(instance_id)))

    async def get_instances(
        self,
        workspace_id: str,
        instance_ids: Sequence[str] | None = None,
    ) -> list[Instance]:
        """Instances of a workspace, optionally restricted to *instance_ids*.

        Id lists are sent in chunks of at most ``max_ids_per_request`` to
        keep the query string bounded.
        """
        require(workspace_id, "workspace_id")
        path = f"/services/workspaces/{_segment(workspace_id)}/instances"
        if instance_ids is None:
            return [Instance.from_json(doc) for doc in await self._executor.get_json(path)]

        instances: list[Instance] = []
        for chunk in _chunks(list(instance_ids), self._max_ids):
            docs = await self._executor.get_json(path, params={"ids": ",".join(chunk)})
            instances.extend(Instance.from_json(doc) for doc in docs)
        return instances

    async def find_instances(self, instance_ids: Iterable[str]) -> list[Instance]:
        """Look *instance_ids* up across every workspace.

        Workspaces are queried in order, each for the ids still missing,
        and the search stops as soon as every id has been found.
        """
        remaining = list(dict.fromkeys(instance_ids))
        found: dict[str, Instance] = {}
        if not remaining:
            return []

        for workspace in await self.get_workspaces():
            for instance in await self.get_instances(workspace["id"], remaining):
                found.setdefault(instance.id, instance)
            remaining = [iid for iid in remaining if iid not in found]
            if not remaining:
                break

        if remaining:
            logger.info(
                "Instances not found in any workspace",
                extra={"missing": len(remaining)},
            )
        return list(found.values())

    # ── Mutations ────────────────────────────────────────────────

    def _monitor(self, url: str, operations: Iterable[str], updated: Any) -> ProgressMonitor:
        return ProgressMonitor(
            self._executor,
            url,
            operations,
            updated,
            poll_interval_seconds=self._poll_interval,
        )

    async def update_instance(
        self,
        instance: Instance,
        variables: Iterable[Variable] | None = None,
    ) -> Instance:
        """PUT *instance* back, first merging *variables* into it if given."""
        overrides = list(variables or ())
        if overrides:
            stack = await self.box_stacks.for_instance(instance)
            instance, result = apply_overrides(instance, stack, overrides)
            logger.debug(
                "Merged variable overrides",
                extra={
                    "instance_id": instance.id,
                    "updated": len(result.updated),
                    "added": len(result.added),
                    "discarded": len(result.discarded),
                },
            )
        resp = await self._executor.execute(
            "PUT", self.instance_url(instance.id), json=instance.to_json()
        )
        return Instance.from_json(resp.json())

    async def deploy(
        self,
        profile_id: str,
        workspace_id: str,
        environment: str,
        instances: int = 1,
        variables: Iterable[Variable] = (),
        *,
        box_version: str | None = None,
    ) -> ProgressMonitor:
        require(profile_id, "profile_id")
        require(workspace_id, "workspace_id")
        profile = await self.get_profile(profile_id)
        request = build_deploy_request(
            profile,
            workspace_id=workspace_id,
            environment=environment,
            instances=instances,
            variables=variables,
            box_version=box_version,
        )
        resp = await self._executor.execute("POST", "/services/instances", json=request)
        doc = resp.json()
        url = self._executor.absolute_url(doc["uri"]) if doc.get("uri") else self.instance_url(doc["id"])
        logger.info(
            "Deploy submitted",
            extra={"instance_id": doc.get("id"), "profile_id": profile_id, "environment": environment},
        )
        return self._monitor(url, {Operation.DEPLOY}, doc.get("updated"))

    async def _do_operation(
        self,
        instance: Instance,
        operation: str,
        variables: Iterable[Variable] | None = None,
    ) -> Instance:
        if variables:
            instance = await self.update_instance(instance, variables)
        await self._executor.execute("PUT", f"{self.instance_url(instance.id)}/{operation}")
        logger.info(
            "Operation submitted",
            extra={"instance_id": instance.id, "operation": operation},
        )
        return await self.get_instance(instance.id)

    async def reconfigure(
        self, instance_id: str, variables: Iterable[Variable] | None = None
    ) -> ProgressMonitor:
        instance = await self._do_operation(
            await self.get_instance(instance_id), Operation.RECONFIGURE, list(variables or ())
        )
        return self._monitor(self.instance_url(instance_id), {Operation.RECONFIGURE}, instance.updated)

    async def reinstall(
        self, instance_id: str, variables: Iterable[Variable] | None = None
    ) -> ProgressMonitor:
        instance = await self._do_operation(
            await self.get_instance(instance_id), Operation.REINSTALL, list(variables or ())
        )
        return self._monitor(self.instance_url(instance_id), {Operation.REINSTALL}, instance.updated)

    async def poweron(self, instance_id: str) -> Monitor:
        instance = await self.get_instance(instance_id)
        if instance.is_on and instance.state in (InstanceState.DONE, InstanceState.PROCESSING):
            logger.info("Instance already on", extra={"instance_id": instance_id})
            return DoneMonitor(self.instance_url(instance_id))
        instance = await self._do_operation(instance, Operation.POWERON)
        return self._monitor(self.instance_url(instance_id), {Operation.POWERON}, instance.updated)

    async def shutdown(self, instance_id: str) -> ProgressMonitor:
        instance = await self._do_operation(await self.get_instance(instance_id), Operation.SHUTDOWN)
        return self._monitor(self.instance_url(instance_id), SHUTDOWN_OPERATIONS, instance.updated)

    async def _do_terminate(self, instance: Instance, operation: str) -> ProgressMonitor:
        url = self.instance_url(instance.id)
        await self._executor.execute("DELETE", url, params={"operation": operation})
        logger.info(
            "Termination submitted",
            extra={"instance_id": instance.id, "operation": operation},
        )
        return self._monitor(url, TERMINATE_OPERATIONS, instance.updated)

    async def terminate(self, instance_id: str) -> ProgressMonitor:
        instance = await self.get_instance(instance_id)
        return await self._do_terminate(instance, choose_terminate_operation(instance))

    async def force_terminate(self, instance_id: str) -> ProgressMonitor:
        return await self._do_terminate(await self.get_instance(instance_id), "force_terminate")

    async def delete(self, instance_id: str) -> None:
        require(instance_id, "instance_id")
        await self._executor.execute(
            "DELETE", self.instance_url(instance_id), params={"operation": "delete"}
        )
        logger.info("Instance deleted", extra={"instance_id": instance_id})
