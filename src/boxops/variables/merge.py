"""Override resolution against instance and box-stack variables.

An override names a variable by ``(name, scope)``. When the instance already
carries that variable its value is replaced in place. When only a box in
the instance's stack declares it, the declaration is copied into the
instance with the override's value. Overrides with no declaration anywhere
are discarded and reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ..models import Instance, Variable, VariableKey
from .box_stack import BoxStack

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MergeResult:
    """Outcome of one merge: the new variable list and what happened to each key."""

    variables: list[Variable]
    updated: list[VariableKey] = field(default_factory=list)
    added: list[VariableKey] = field(default_factory=list)
    discarded: list[VariableKey] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updated or self.added)


def merge_variables(
    instance_variables: Iterable[Variable],
    declared: Mapping[VariableKey, Variable],
    overrides: Iterable[Variable],
) -> MergeResult:
    """Resolve *overrides* against the instance's variables and *declared*.

    *declared* is the ``(name, scope)`` table of a box stack (see
    ``BoxStack.lookup``). The input lists are not modified.
    """
    merged = list(instance_variables)
    index = {var.key: pos for pos, var in enumerate(merged)}
    result = MergeResult(variables=merged)

    for override in overrides:
        key = override.key
        pos = index.get(key)
        if pos is not None:
            merged[pos] = merged[pos].with_value(override.value)
            if key not in result.added and key not in result.updated:
                result.updated.append(key)
            continue

        declaration = declared.get(key)
        if declaration is None:
            logger.warning(
                "Discarding override with no declaration",
                extra={"variable": override.name, "scope": override.scope},
            )
            result.discarded.append(key)
            continue

        index[key] = len(merged)
        merged.append(declaration.with_value(override.value))
        result.added.append(key)

    return result


def apply_overrides(
    instance: Instance,
    stack: BoxStack,
    overrides: Iterable[Variable],
) -> tuple[Instance, MergeResult]:
    """Return a copy of *instance* with *overrides* merged into its variables."""
    result = merge_variables(instance.variables, stack.lookup(), overrides)
    return instance.with_variables(result.variables), result


def remove_invalid_variables(
    overrides: Iterable[Variable],
    stack: BoxStack,
) -> list[Variable]:
    """Keep only overrides that some box in *stack* declares."""
    declared = stack.lookup()
    valid: list[Variable] = []
    for override in overrides:
        if override.key in declared:
            valid.append(override)
        else:
            logger.warning(
                "Ignoring variable not declared by the box stack",
                extra={"variable": override.name, "scope": override.scope},
            )
    return valid


def drop_empty_values(overrides: Iterable[Variable]) -> list[Variable]:
    """Remove overrides whose value is ``None`` or an empty string."""
    return [var for var in overrides if var.value not in (None, "")]
