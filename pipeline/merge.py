"""
Merge engine: folds stage patches into the workflow state.

The reducer table is read from the `Annotated` metadata on `WorkflowState`
so the graph channels and `apply_patch` can never disagree.
"""

import inspect
from typing import Any, Callable, Dict, Iterable, Mapping

from typing_extensions import get_type_hints

from pipeline.state import WorkflowState

Reducer = Callable[[Any, Any], Any]


def _positional_arity(fn: Callable) -> int:
    params = inspect.signature(fn).parameters.values()
    return sum(
        1 for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    )


def _build_reducer_table() -> Dict[str, Reducer]:
    table: Dict[str, Reducer] = {}
    hints = get_type_hints(WorkflowState, include_extras=True)

    for field, hint in hints.items():
        reducers = [m for m in getattr(hint, "__metadata__", ()) if callable(m)]
        if len(reducers) != 1:
            raise TypeError(f"State field '{field}' must declare exactly one reducer, found {len(reducers)}")
        reducer = reducers[0]
        if _positional_arity(reducer) != 2:
            raise TypeError(f"Reducer for '{field}' must take (current, new)")
        table[field] = reducer

    return table


FIELD_REDUCERS: Dict[str, Reducer] = _build_reducer_table()


def apply_patch(current: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge one patch into a (possibly partial) state and return a new dict.
    Works on partial states too, so patches can be combined before applying.
    """
    unknown = set(patch) - set(FIELD_REDUCERS)
    if unknown:
        raise KeyError(f"Unknown state field(s): {sorted(unknown)}")

    merged = dict(current)
    for field, value in patch.items():
        merged[field] = FIELD_REDUCERS[field](current.get(field), value)
    return merged


def fold_patches(state: Mapping[str, Any], patches: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    merged = dict(state)
    for patch in patches:
        merged = apply_patch(merged, patch)
    return merged
