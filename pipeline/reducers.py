"""
Field reducers for the workflow state.

Each reducer takes (current, new) and returns the merged value. They double as
LangGraph channel reducers, so they must keep exactly two positional params.
"""

from typing import Any, List, Optional


def override_if_present(current: Any, new: Any) -> Any:
    return new if new is not None else current


def concat(current: Optional[List[Any]], new: Optional[List[Any]]) -> List[Any]:
    return list(current or []) + list(new or [])


def tri_state_override(current: Optional[bool], new: Optional[bool]) -> Optional[bool]:
    # None means "not set by this patch"; an explicit False still wins.
    if new is None:
        return current
    return bool(new)


class _Clear:
    """Patch value that resets a field to None."""

    def __repr__(self) -> str:
        return "CLEAR"


CLEAR = _Clear()


def clearable_override(current: Any, new: Any) -> Any:
    if isinstance(new, _Clear):
        return None
    return override_if_present(current, new)
