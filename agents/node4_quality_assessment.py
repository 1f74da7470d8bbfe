from typing import Any, Dict

from agents.common import require, stage_node
from pipeline.router import decide
from pipeline.state import Stage
from pipeline.utils import call_with_timeout, get_logger

logger = get_logger(__name__)


def build_qa_bundle(state: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "farm_data": state.get("farm_data"),
        "season_data": state.get("season_data"),
        "farmer_logs": state.get("farmer_logs") or [],
        "satellite_data": state.get("satellite_data") or [],
        "remote_sensing_analysis": state.get("remote_sensing_analysis"),
        "emission_calculations": state.get("emission_calculations"),
    }


@stage_node(Stage.QUALITY_ASSURANCE)
def node4_quality_assessment(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
    require(state, "season_data", "remote_sensing_analysis", "emission_calculations")

    assessment = call_with_timeout(
        services.qa.assess, build_qa_bundle(state),
        timeout=settings.call_timeout_seconds, label="QAEvaluator.assess",
    )
    qa = assessment.model_dump(mode="json")
    qa["pass_number"] = int(state.get("retry_count") or 0) + 1

    logger.info(
        "score=%.3f recommendation=%s flags=%d warnings=%d verdict=%s",
        assessment.score, assessment.recommendation, len(assessment.flags), len(assessment.warnings),
        decide(assessment.score, assessment.recommendation).value,
    )
    for flag in assessment.flags:
        logger.warning("QA flag: %s", flag)

    return {"quality_assessment": qa}
