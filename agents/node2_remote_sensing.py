import json
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from agents.common import MissingInput, require, stage_node
from pipeline.state import Stage
from pipeline.utils import call_with_timeout, get_logger
from services.llm_validator import extract_confidence, extract_discrepancies

logger = get_logger(__name__)

# The language model may nudge confidence, never decide it
MAX_ADVISORY_SHIFT = 0.1

EXPECTED_PATTERNS = """
Expected water-level patterns by declared method:
- FLOOD: continuous flooding throughout the season
- AWD: alternate wetting and drying cycles every 7-14 days
- SRI: minimal water with periodic wetting
"""


def observation_window(season_data: Dict[str, Any]) -> Tuple[date, date]:
    start_raw = season_data.get("transplant_date") or season_data.get("sowing_date")
    if not start_raw:
        raise MissingInput("Season has neither a transplant nor a sowing date")
    start = date.fromisoformat(start_raw)

    end_raw = season_data.get("harvest_date")
    end = date.fromisoformat(end_raw) if end_raw else date.today()
    if end < start:
        raise MissingInput(f"Observation window ends ({end}) before it starts ({start})")
    return start, end


def blend_confidence(sensor: float, advisory: Optional[float]) -> float:
    if advisory is None:
        return sensor
    shift = max(-MAX_ADVISORY_SHIFT, min(MAX_ADVISORY_SHIFT, advisory - sensor))
    return round(max(0.0, min(1.0, sensor + shift)), 3)


def get_advisory_review(validator, declared_method: str, events: List[Dict[str, Any]], farmer_logs: List[Dict[str, Any]], timeout: float) -> Tuple[Optional[float], Optional[str]]:
    if validator is None:
        return None, None

    system_prompt = (
        "You are analyzing satellite data to verify farmer-reported irrigation practices.\n"
        "Compare the satellite-detected flood patterns with farmer irrigation logs.\n"
        f"Farmer's irrigation method: {declared_method}\n{EXPECTED_PATTERNS}"
    )
    question = (
        f"Satellite flood/dry timeline: {json.dumps(events, default=str)}\n"
        f"Farmer irrigation logs: {json.dumps(farmer_logs, default=str)}\n\n"
        "Does the satellite data support the claimed method? "
        "Give a line 'Confidence: <0-100>%' and flag any discrepancy."
    )

    try:
        text = call_with_timeout(validator.review, system_prompt, question, timeout=timeout, label="NaturalLanguageValidator.review")
    except Exception as e:
        logger.warning("advisory sensing review skipped: %s", e)
        return None, None
    return extract_confidence(text, default=None), text


@stage_node(Stage.REMOTE_SENSING)
def node2_remote_sensing(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
    require(state, "farm_data", "season_data")

    farm = state["farm_data"]
    season = state["season_data"]
    declared = season.get("farming_method")
    timeout = settings.call_timeout_seconds

    # 1. Fetch observations for the growing window
    start, end = observation_window(season)
    series = call_with_timeout(
        services.sensing.fetch, state["farm_id"], start, end,
        timeout=timeout, label="RemoteSensingProvider.fetch",
    )

    # 2. Flood/dry timeline + method confidence (provider's job)
    analysis = call_with_timeout(
        services.sensing.analyze, series, farm.get("coordinates"), declared_method=declared,
        timeout=timeout, label="RemoteSensingProvider.analyze",
    )
    events = [e.model_dump(mode="json") for e in analysis.events]

    # 3. Advisory cross-check against farmer logs
    advisory_conf, advisory_text = get_advisory_review(
        services.validator, declared, events, state.get("farmer_logs") or [], timeout,
    )
    confidence = blend_confidence(analysis.confidence, advisory_conf)

    remote_sensing_analysis = {
        "observation_window": {"from": start.isoformat(), "to": end.isoformat()},
        "observations": len(series),
        "events": events,
        "flood_observations": analysis.flood_observations,
        "dry_observations": analysis.dry_observations,
        "awd_cycles": analysis.awd_cycles,
        "declared_method": declared,
        "observed_method": analysis.observed_method,
        "method_match": analysis.observed_method == declared if analysis.observed_method else None,
        "sensor_confidence": analysis.confidence,
        "confidence": confidence,
        "verification_result": advisory_text,
        "discrepancies": extract_discrepancies(advisory_text) if advisory_text else [],
        "methodology": analysis.methodology,
    }

    logger.info(
        "observations=%d events=%d awd_cycles=%d observed=%s declared=%s confidence=%.2f",
        len(series), len(events), analysis.awd_cycles, analysis.observed_method, declared, confidence,
    )

    return {
        "satellite_data": [o.model_dump(mode="json") for o in series],
        "remote_sensing_analysis": remote_sensing_analysis,
    }
