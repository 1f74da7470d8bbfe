"""
MRV Pipeline - Routing decisions
Pure functions consulted by the graph's conditional edges. The decision after
quality assessment depends only on the assessment score and recommendation.
"""

import re
from enum import Enum
from typing import Any, Dict, Optional

from pipeline.state import RunStatus

PROCEED_THRESHOLD = 0.8
RETRY_FLOOR = 0.6

_APPROVAL_WORDS = frozenset({"proceed", "proceeds", "approve", "approved"})
_NEGATIONS = frozenset({"not", "no", "never", "dont", "don", "cannot", "without"})


class Verdict(str, Enum):
    PROCEED = "proceed"
    RETRY = "retry"
    FAIL = "fail"


# Edge labels used by the graph in addition to the verdicts
NEXT = "next"
HALT = "halt"


def is_approval(recommendation: Optional[str]) -> bool:
    """
    Whole-word match, so "DISAPPROVE" is not an approval. An approval word
    preceded by a negation within two words ("do not proceed", "not
    approved") does not count.
    """
    words = re.findall(r"[a-z]+", (recommendation or "").lower())
    for i, word in enumerate(words):
        if word in _APPROVAL_WORDS and not _NEGATIONS.intersection(words[max(0, i - 2):i]):
            return True
    return False


def decide(score: Optional[float], recommendation: Optional[str]) -> Verdict:
    """
    Half-open bands: [0.8, 1] with approval proceeds, [0.6, 0.8) retries,
    below 0.6 (or no score at all) fails. A high score without an approving
    recommendation is sent back for another pass.
    """
    if score is None:
        return Verdict.FAIL
    if score >= PROCEED_THRESHOLD and is_approval(recommendation):
        return Verdict.PROCEED
    if score >= RETRY_FLOOR:
        return Verdict.RETRY
    return Verdict.FAIL


def retries_remaining(state: Dict[str, Any], max_retries: int) -> bool:
    return int(state.get("retry_count") or 0) < max_retries


def route_after_stage(state: Dict[str, Any], max_retries: int) -> str:
    """
    Unconditional edge in stage order unless the stage just failed. A failed
    stage halts the run, except a transient failure which may consume a retry.
    """
    if state.get("status") != RunStatus.FAILED:
        return NEXT

    failure = state.get("failure") or {}
    if failure.get("retryable") and retries_remaining(state, max_retries):
        return Verdict.RETRY.value
    return HALT


def route_after_assessment(state: Dict[str, Any], max_retries: int) -> str:
    stage_route = route_after_stage(state, max_retries)
    if stage_route != NEXT:
        return stage_route

    qa = state.get("quality_assessment") or {}
    verdict = decide(qa.get("score"), qa.get("recommendation"))

    if verdict == Verdict.RETRY and not retries_remaining(state, max_retries):
        return Verdict.FAIL.value
    return verdict.value
