"""Instance, variable and operation model for the control-plane API.

Server documents are JSON objects with more fields than the client cares
about. The typed views below keep the original document around so that an
update round-trips every field the server sent, changing only what the
client touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Iterable, Mapping


class InstanceState(StrEnum):
    PROCESSING = "processing"
    DONE = "done"
    UNAVAILABLE = "unavailable"


class Operation(StrEnum):
    DEPLOY = "deploy"
    REINSTALL = "reinstall"
    RECONFIGURE = "reconfigure"
    POWERON = "poweron"
    SHUTDOWN = "shutdown"
    SHUTDOWN_SERVICE = "shutdown_service"
    TERMINATE = "terminate"
    TERMINATE_SERVICE = "terminate_service"
    SNAPSHOT = "snapshot"


FINISH_STATES = frozenset({InstanceState.DONE, InstanceState.UNAVAILABLE})

SHUTDOWN_OPERATIONS = frozenset({Operation.SHUTDOWN, Operation.SHUTDOWN_SERVICE})
TERMINATE_OPERATIONS = frozenset({Operation.TERMINATE, Operation.TERMINATE_SERVICE})
ON_OPERATIONS = frozenset(
    {
        Operation.DEPLOY,
        Operation.POWERON,
        Operation.REINSTALL,
        Operation.RECONFIGURE,
        Operation.SNAPSHOT,
    }
)
OFF_OPERATIONS = SHUTDOWN_OPERATIONS | TERMINATE_OPERATIONS

# Query values accepted by DELETE /services/instances/{id}?operation=...
DELETE_OPERATIONS = ("terminate", "force_terminate", "delete")

VariableKey = tuple[str, str]

_VARIABLE_FIELDS = frozenset({"name", "scope", "value", "type"})


@dataclass(frozen=True, slots=True)
class Variable:
    """A declared or instance variable, unique by ``(name, scope)``."""

    name: str
    value: Any = None
    scope: str = ""
    type: str | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def key(self) -> VariableKey:
        return (self.name, self.scope)

    def with_value(self, value: Any) -> Variable:
        return replace(self, value=value)

    @classmethod
    def from_json(cls, doc: Mapping[str, Any]) -> Variable:
        if not doc.get("name"):
            raise ValueError(f"variable without a name: {doc!r}")
        return cls(
            name=doc["name"],
            value=doc.get("value"),
            scope=doc.get("scope") or "",
            type=doc.get("type"),
            extra=MappingProxyType(
                {k: v for k, v in doc.items() if k not in _VARIABLE_FIELDS}
            ),
        )

    def to_json(self) -> dict[str, Any]:
        """Serialise, dropping the scope key when it is the unscoped default."""
        doc: dict[str, Any] = dict(self.extra)
        doc["name"] = self.name
        if self.type is not None:
            doc["type"] = self.type
        doc["value"] = self.value
        if self.scope:
            doc["scope"] = self.scope
        return doc


def parse_variables(docs: Iterable[Mapping[str, Any]] | None) -> list[Variable]:
    return [Variable.from_json(doc) for doc in docs or ()]


@dataclass(frozen=True, slots=True)
class Instance:
    """Snapshot of one instance as last reported by the server."""

    id: str
    state: str
    operation: str
    updated: Any
    variables: tuple[Variable, ...] = ()
    boxes: tuple[Mapping[str, Any], ...] = ()
    name: str = ""
    uri: str = ""
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_json(cls, doc: Mapping[str, Any]) -> Instance:
        return cls(
            id=doc["id"],
            state=doc.get("state", ""),
            operation=doc.get("operation", ""),
            updated=doc.get("updated"),
            variables=tuple(parse_variables(doc.get("variables"))),
            boxes=tuple(doc.get("boxes") or ()),
            name=doc.get("name", ""),
            uri=doc.get("uri", ""),
            raw=MappingProxyType(dict(doc)),
        )

    @property
    def main_box_id(self) -> str | None:
        if not self.boxes:
            return None
        return self.boxes[0].get("id")

    @property
    def is_on(self) -> bool:
        return self.operation in ON_OPERATIONS

    def with_variables(self, variables: Iterable[Variable]) -> Instance:
        return replace(self, variables=tuple(variables))

    def to_json(self) -> dict[str, Any]:
        doc = dict(self.raw)
        doc["id"] = self.id
        doc["variables"] = [v.to_json() for v in self.variables]
        return doc
