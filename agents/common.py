"""
Shared plumbing for stage nodes: failure-to-data conversion and input checks.
"""

import functools
import time
from typing import Any, Callable, Dict

from pipeline.errors import MRVError
from pipeline.state import STAGE_SUCCESS_STATUS, RunStatus, Stage
from pipeline.utils import get_logger

logger = get_logger("agents")

# Stages that only read from collaborators; a timeout here may re-run the pass
READ_ONLY_STAGES = frozenset({
    Stage.INGESTION,
    Stage.REMOTE_SENSING,
    Stage.EMISSION_MODELING,
    Stage.QUALITY_ASSURANCE,
})


class MissingInput(MRVError):
    kind = "MissingInput"


def require(state: Dict[str, Any], *fields: str) -> None:
    missing = [f for f in fields if state.get(f) is None]
    if missing:
        raise MissingInput(f"Missing required state: {', '.join(missing)}")


def stage_failure(stage: Stage, error: BaseException) -> Dict[str, Any]:
    kind = getattr(error, "kind", type(error).__name__)
    retryable = bool(getattr(error, "retryable", False)) and stage in READ_ONLY_STAGES
    return {
        "errors": [f"{kind} in {stage.value}: {error}"],
        "current_step": stage,
        "status": RunStatus.FAILED,
        "failure": {
            "stage": stage.value,
            "kind": kind,
            "message": str(error),
            "retryable": retryable,
        },
    }


def stage_node(stage: Stage) -> Callable:
    """
    Wrap a stage body so it never raises. The body returns only the fields it
    produced; `current_step` and the success status are filled in here.
    """
    def decorator(fn: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
        @functools.wraps(fn)
        def wrapper(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
            t0 = time.monotonic()
            logger.info("[%s] start farm=%s season=%s", stage.value, state.get("farm_id"), state.get("season_id"))
            try:
                patch = fn(state, services, settings)
            except MRVError as e:
                logger.error("[%s] failed kind=%s: %s", stage.value, e.kind, e)
                return stage_failure(stage, e)
            except Exception as e:
                logger.exception("[%s] unexpected failure", stage.value)
                return stage_failure(stage, e)

            patch["current_step"] = stage
            patch.setdefault("status", STAGE_SUCCESS_STATUS[stage])
            logger.info("[%s] done took_ms=%d", stage.value, int((time.monotonic() - t0) * 1000))
            return patch
        return wrapper
    return decorator
