"""Box stack resolution and variable override merging."""

from .box_stack import BoxStack, BoxStackEntry, BoxStackResolver
from .merge import (
    MergeResult,
    apply_overrides,
    drop_empty_values,
    merge_variables,
    remove_invalid_variables,
)

__all__ = [
    "BoxStack",
    "BoxStackEntry",
    "BoxStackResolver",
    "MergeResult",
    "apply_overrides",
    "drop_empty_values",
    "merge_variables",
    "remove_invalid_variables",
]
