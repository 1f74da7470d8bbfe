import argparse
import json
import os
import threading
import time
from typing import Any, Callable, Dict, Optional

from langgraph.errors import GraphRecursionError
from langgraph.graph import StateGraph, END

from pipeline.config import PipelineSettings
from pipeline.errors import ConfigError, QualityRejected
from pipeline.merge import apply_patch
from pipeline.reducers import CLEAR
from pipeline.router import (
    HALT, NEXT, PROCEED_THRESHOLD, RETRY_FLOOR, Verdict, decide,
    route_after_assessment, route_after_stage,
)
from pipeline.state import RunStatus, Stage, TERMINAL_STATUSES, WorkflowState, new_state
from pipeline.utils import get_logger

# Import Agents
from agents.node1_ingest import node1_ingest
from agents.node2_remote_sensing import node2_remote_sensing
from agents.node3_emission_modeling import node3_emission_modeling
from agents.node4_quality_assessment import node4_quality_assessment
from agents.node5_report import node5_report
from agents.node6_attestation import node6_attestation
from agents.node7_mint import node7_mint

logger = get_logger(__name__)

STAGES = [
    (Stage.INGESTION, node1_ingest),
    (Stage.REMOTE_SENSING, node2_remote_sensing),
    (Stage.EMISSION_MODELING, node3_emission_modeling),
    (Stage.QUALITY_ASSURANCE, node4_quality_assessment),
    (Stage.REPORT_GENERATION, node5_report),
    (Stage.ATTESTATION, node6_attestation),
    (Stage.BLOCKCHAIN_MINT, node7_mint),
]

RETRY_NODE = "schedule_retry"
REJECT_NODE = "reject_run"

# Steps in one pass through ingestion..QA plus the retry gate
_STEPS_PER_PASS = 5


def schedule_retry(state: WorkflowState) -> Dict[str, Any]:
    """
    Retry gate: counts the re-run and sends the run back to ingestion. The
    previous pass's failure is cleared; its message stays in `errors`.
    """
    attempt = int(state.get("retry_count") or 0) + 1
    failure = state.get("failure") or {}
    reason = failure.get("kind") if state.get("status") == RunStatus.FAILED else "borderline quality score"
    logger.warning("[retry] re-running from ingestion attempt=%d reason=%s", attempt, reason)
    return {"retry_count": attempt, "status": RunStatus.START, "failure": CLEAR}


def reject_run(state: WorkflowState, max_retries: int) -> Dict[str, Any]:
    """
    Terminal rejection after quality assessment, either because the score is
    under the floor or because the retry budget is spent.
    """
    qa = state.get("quality_assessment") or {}
    score = qa.get("score")
    verdict = decide(score, qa.get("recommendation"))

    if verdict == Verdict.RETRY:
        error = QualityRejected(
            f"score {score:.3f} still below {PROCEED_THRESHOLD} after {max_retries} retries",
            stage=Stage.QUALITY_ASSURANCE.value,
        )
    elif score is None:
        error = QualityRejected("assessment produced no score", stage=Stage.QUALITY_ASSURANCE.value)
    else:
        error = QualityRejected(f"score {score:.3f} below floor {RETRY_FLOOR}", stage=Stage.QUALITY_ASSURANCE.value)

    logger.error("[reject] %s", error)
    return {
        "errors": [f"{error.kind}: {error}"],
        "status": RunStatus.FAILED,
        "failure": {"stage": error.stage, "kind": error.kind, "message": str(error), "retryable": False},
    }


def _bind(stage_fn: Callable, services, settings) -> Callable[[WorkflowState], Dict[str, Any]]:
    def node(state: WorkflowState) -> Dict[str, Any]:
        return stage_fn(state, services, settings)
    node.__name__ = stage_fn.__name__
    return node


def build_graph(services, settings: PipelineSettings):
    """
    Construct the MRV StateGraph.
    """
    max_retries = settings.max_retries

    def stage_router(state: WorkflowState) -> str:
        return route_after_stage(state, max_retries)

    def qa_router(state: WorkflowState) -> str:
        return route_after_assessment(state, max_retries)

    def reject(state: WorkflowState) -> Dict[str, Any]:
        return reject_run(state, max_retries)

    workflow = StateGraph(WorkflowState)

    # Add Nodes, named after the stage functions ("attestation" is also a state key)
    for _stage, fn in STAGES:
        workflow.add_node(fn.__name__, _bind(fn, services, settings))
    workflow.add_node(RETRY_NODE, schedule_retry)
    workflow.add_node(REJECT_NODE, reject)

    # Set Entry
    workflow.set_entry_point(node1_ingest.__name__)

    # Stage-order edges, halting on failure
    for (stage, fn), (_next_stage, next_fn) in zip(STAGES, STAGES[1:]):
        if stage == Stage.QUALITY_ASSURANCE:
            continue
        workflow.add_conditional_edges(
            fn.__name__,
            stage_router,
            {
                NEXT: next_fn.__name__,
                Verdict.RETRY.value: RETRY_NODE,
                HALT: END,
            }
        )

    # Conditional Edge from Quality Assurance
    workflow.add_conditional_edges(
        node4_quality_assessment.__name__,
        qa_router,
        {
            Verdict.PROCEED.value: node5_report.__name__,
            Verdict.RETRY.value: RETRY_NODE,
            Verdict.FAIL.value: REJECT_NODE,
            HALT: END,
        }
    )

    # Terminal Edges
    workflow.add_edge(RETRY_NODE, node1_ingest.__name__)
    workflow.add_edge(REJECT_NODE, END)
    workflow.add_edge(node7_mint.__name__, END)

    return workflow.compile()


class MRVOrchestrator:
    """
    Runs one (farm, season) pair through the graph. The caller always gets the
    final state back; failures are reported in `errors`, never raised.
    """

    def __init__(self, services, settings: PipelineSettings):
        self.services = services
        self.settings = settings
        self.app = build_graph(services, settings)

    @property
    def recursion_limit(self) -> int:
        return _STEPS_PER_PASS * (self.settings.max_retries + 1) + len(STAGES) + 3

    def run(self, farm_id: str, season_id: str, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        state = new_state(farm_id, season_id)

        logger.info("=== MRV run start farm=%s season=%s max_retries=%d ===", farm_id, season_id, self.settings.max_retries)
        t0 = time.monotonic()

        stream = self.app.stream(dict(state), config={"recursion_limit": self.recursion_limit}, stream_mode="updates")
        try:
            for chunk in stream:
                for _node, patch in chunk.items():
                    if patch:
                        state = apply_patch(state, patch)

                # Cooperative cancellation, only between stages
                if cancel_event is not None and cancel_event.is_set() and state["status"] not in TERMINAL_STATUSES:
                    step = state.get("current_step")
                    step_name = step.value if isinstance(step, Stage) else "start"
                    logger.warning("run cancelled after %s", step_name)
                    state = apply_patch(state, {
                        "errors": [f"Cancelled after {step_name}"],
                        "status": RunStatus.FAILED,
                        "failure": {"stage": step_name, "kind": "Cancelled", "message": "run cancelled", "retryable": False},
                    })
                    break
        except GraphRecursionError as e:
            logger.error("run exceeded step limit: %s", e)
            state = apply_patch(state, {
                "errors": [f"GraphRecursionError: {e}"],
                "status": RunStatus.FAILED,
            })
        except Exception as e:
            logger.exception("MRV workflow failed")
            state = apply_patch(state, {
                "errors": [f"{type(e).__name__}: {e}"],
                "status": RunStatus.FAILED,
            })
        finally:
            stream.close()

        logger.info(
            "=== MRV run end farm=%s season=%s status=%s complete=%s retries=%d errors=%d took_ms=%d ===",
            farm_id, season_id, getattr(state["status"], "value", state["status"]), state.get("is_complete"),
            state.get("retry_count") or 0, len(state["errors"]), int((time.monotonic() - t0) * 1000),
        )
        return state


def run_pipeline(farm_id: str, season_id: str, services, settings: PipelineSettings, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
    """
    Run the full pipeline for one farm season.
    """
    return MRVOrchestrator(services, settings).run(farm_id, season_id, cancel_event=cancel_event)


def main():
    from data.synthetic_generator import generate_scenario_awd
    from services.registry import build_scenario_services

    parser = argparse.ArgumentParser(description="Run the MRV pipeline for one demo scenario.")
    parser.add_argument("scenario", nargs="?", default="data/scenarios/scenario_1.json", help="Path to a scenario JSON file")
    parser.add_argument("--max-retries", dest="max_retries", type=int, help="QA retry bound (overrides MRV_MAX_RETRIES)")
    args = parser.parse_args()

    try:
        settings = PipelineSettings.from_env(overrides={"max_retries": args.max_retries})
    except ConfigError as e:
        parser.error(str(e))

    if os.path.exists(args.scenario):
        logger.info("loading %s", args.scenario)
        with open(args.scenario, "r", encoding="utf-8") as f:
            scenario = json.load(f)
    else:
        logger.info("scenario file not found, using generated AWD scenario")
        scenario = generate_scenario_awd()

    services = build_scenario_services(scenario, settings)
    result = run_pipeline(scenario["farm"]["id"], scenario["season"]["id"], services, settings)

    status = getattr(result["status"], "value", result["status"])
    print(f"Final Status: {status}")
    calc = result.get("emission_calculations")
    if calc:
        print(f"Reduction: {calc['reduction']['ch4_kg']:.4f} kg CH4 ({calc['reduction']['co2e_tonnes']:.6f} tCO2e)")
    receipt = result.get("blockchain_receipt")
    print(f"Minted: {'Yes (' + receipt['tx_ref'][:18] + ')' if receipt else 'No'}")
    for err in result["errors"]:
        print(f"Error: {err}")


if __name__ == "__main__":
    main()
