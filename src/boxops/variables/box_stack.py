"""Box stack resolution.

A box declares default variables, and some of those variables are of type
``Box``: their value is the id of another box the first one depends on.
The stack is the ordered closure of that dependency graph, root first.
Declarations reached through a ``Box`` variable are scoped by the dotted
path of variable names that leads to them (``db``, ``db.storage``), which
is how two boxes in one stack can declare the same variable name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping
from urllib.parse import quote

from ..http.errors import require
from ..http.executor import RequestExecutor
from ..models import Instance, Variable, VariableKey, parse_variables

logger = logging.getLogger(__name__)

BOX_VARIABLE_TYPE = "Box"


@dataclass(frozen=True, slots=True)
class BoxStackEntry:
    """One box of a stack and the scope its declarations live under."""

    box: Mapping[str, Any]
    scope: str = ""

    @property
    def box_id(self) -> str:
        return self.box.get("id", "")

    def variables(self) -> list[Variable]:
        declared = parse_variables(self.box.get("variables"))
        if not self.scope:
            return declared
        return [
            var if var.scope else replace(var, scope=self.scope)
            for var in declared
        ]


@dataclass(frozen=True, slots=True)
class BoxStack:
    """Read-only snapshot of a box and everything it depends on."""

    entries: tuple[BoxStackEntry, ...] = ()

    @property
    def box_ids(self) -> list[str]:
        return [entry.box_id for entry in self.entries]

    def variables(self) -> list[Variable]:
        """All declarations, in stack order."""
        return [var for entry in self.entries for var in entry.variables()]

    def lookup(self) -> dict[VariableKey, Variable]:
        """``(name, scope)`` table; the first declaration of a key wins."""
        table: dict[VariableKey, Variable] = {}
        for var in self.variables():
            table.setdefault(var.key, var)
        return table

    def to_json(self) -> list[dict[str, Any]]:
        return [dict(entry.box) for entry in self.entries]


class BoxStackResolver:
    """Fetches box stacks through an authenticated executor."""

    def __init__(self, executor: RequestExecutor) -> None:
        self._executor = executor

    async def for_box(self, box_id: str) -> BoxStack:
        """Stack of a box as computed by the server."""
        require(box_id, "box_id")
        boxes = await self._executor.get_json(f"/services/boxes/{quote(box_id, safe='')}/stack")
        return BoxStack(tuple(BoxStackEntry(box) for box in boxes))

    async def for_instance(self, instance: Instance) -> BoxStack:
        """Stack of an instance's current box composition.

        Boxes embedded in the instance document are used as-is; any other
        dependency is fetched by id.
        """
        root_id = instance.main_box_id
        if not root_id:
            return BoxStack()

        known = {box["id"]: box for box in instance.boxes if box.get("id")}
        entries: list[BoxStackEntry] = []

        async def visit(box_id: str, scope: str, ancestors: frozenset[str]) -> None:
            if box_id in ancestors:
                logger.warning(
                    "Box dependency cycle cut",
                    extra={"box_id": box_id, "scope": scope},
                )
                return
            box = known.get(box_id)
            if box is None:
                box = await self._executor.get_json(f"/services/boxes/{quote(box_id, safe='')}")
                known[box_id] = box
            entries.append(BoxStackEntry(box, scope))
            for var in box.get("variables") or ():
                if var.get("type") == BOX_VARIABLE_TYPE and var.get("value"):
                    child_scope = f"{scope}.{var['name']}" if scope else var["name"]
                    await visit(var["value"], child_scope, ancestors | {box_id})

        await visit(root_id, "", frozenset())
        logger.debug(
            "Resolved box stack",
            extra={"instance_id": instance.id, "boxes": len(entries)},
        )
        return BoxStack(tuple(entries))
