from typing import Any, Dict, Optional, Tuple

from agents.common import require, stage_node
from pipeline.state import Stage
from pipeline.utils import call_with_timeout, get_logger
from schemas.emission_schemas import EmissionReduction
from schemas.farm_schemas import Farm, Season
from services.llm_validator import extract_uncertainty

logger = get_logger(__name__)

# Weight of missing satellite confidence in the uncertainty estimate
CONFIDENCE_UNCERTAINTY_WEIGHT = 0.25
MAX_ADVISORY_RAISE = 0.1


def estimate_uncertainty(base: float, confidence: Optional[float]) -> float:
    confidence = 0.0 if confidence is None else confidence
    return round(min(1.0, base + (1.0 - confidence) * CONFIDENCE_UNCERTAINTY_WEIGHT), 4)


def apply_advisory_uncertainty(model_uncertainty: float, advisory: Optional[float]) -> float:
    """Advice can only widen the band, and only a little."""
    if advisory is None or advisory <= model_uncertainty:
        return model_uncertainty
    return round(min(advisory, model_uncertainty + MAX_ADVISORY_RAISE, 1.0), 4)


def get_advisory_uncertainty(validator, farm: Farm, season: Season, baseline: float, project: float, settings) -> Tuple[Optional[float], Optional[str]]:
    if validator is None:
        return None, None

    system_prompt = (
        "You are a carbon accounting specialist validating methane emission calculations "
        "for rice farming using IPCC 2019 Refinement methodologies.\n"
        f"Farm area: {farm.area} hectares\n"
        f"Farming method: {season.farming_method.value}\n"
        f"Water management: {farm.irrigation_type}\n"
        f"EFc (emission factor): {settings.baseline_emission_factor} kg CH4/ha/season\n"
        f"AWD scaling factor: {settings.awd_scaling_factor}\n"
        f"SRI scaling factor: {settings.sri_scaling_factor}\n"
        f"GWP for CH4: {settings.gwp_methane}"
    )
    question = (
        f"Baseline emissions: {baseline} kg CH4\n"
        f"Project emissions: {project} kg CH4\n"
        f"Reduction: {baseline - project} kg CH4\n\n"
        "Validate these calculations and give a line 'Uncertainty: <0-100>%'."
    )

    try:
        text = call_with_timeout(validator.review, system_prompt, question, timeout=settings.call_timeout_seconds, label="NaturalLanguageValidator.review")
    except Exception as e:
        logger.warning("advisory emission review skipped: %s", e)
        return None, None
    return extract_uncertainty(text, default=None), text


@stage_node(Stage.EMISSION_MODELING)
def node3_emission_modeling(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
    require(state, "farm_data", "season_data", "remote_sensing_analysis")

    farm = Farm.model_validate(state["farm_data"])
    season = Season.model_validate(state["season_data"])
    analysis = state["remote_sensing_analysis"]
    timeout = settings.call_timeout_seconds

    # 1. Baseline (continuous flooding) and project scenario
    baseline = call_with_timeout(services.emission_model.baseline, season, farm, timeout=timeout, label="EmissionModel.baseline")
    project = call_with_timeout(services.emission_model.project, season, farm, analysis, timeout=timeout, label="EmissionModel.project")

    # 2. Reduction and CO2-equivalent
    ch4_reduction = round(baseline.total_ch4 - project.total_ch4, 6)
    reduction = EmissionReduction(
        ch4_kg=ch4_reduction,
        co2e_tonnes=round(ch4_reduction * settings.gwp_methane / 1000, 6),
        percentage=round(ch4_reduction / baseline.total_ch4 * 100, 2) if baseline.total_ch4 else 0.0,
    )

    # 3. Uncertainty, optionally widened by the advisory review
    uncertainty = estimate_uncertainty(settings.base_uncertainty, analysis.get("confidence"))
    advisory, advisory_text = get_advisory_uncertainty(
        services.validator, farm, season, baseline.total_ch4, project.total_ch4, settings,
    )
    uncertainty = apply_advisory_uncertainty(uncertainty, advisory)

    logger.info(
        "baseline=%.4f project=%.4f reduction=%.4f kgCH4 (%.6f tCO2e) uncertainty=%.2f",
        baseline.total_ch4, project.total_ch4, reduction.ch4_kg, reduction.co2e_tonnes, uncertainty,
    )

    return {
        "emission_calculations": {
            "baseline": baseline.model_dump(mode="json"),
            "project": project.model_dump(mode="json"),
            "reduction": reduction.model_dump(mode="json"),
            "uncertainty": uncertainty,
            "gwp_methane": settings.gwp_methane,
            "validation": advisory_text,
            "methodology": baseline.methodology,
        }
    }
