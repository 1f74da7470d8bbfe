from typing import Any, Dict

from agents.common import require, stage_node
from agents.node6_attestation import content_hash
from pipeline.state import Stage
from pipeline.utils import call_with_timeout, get_logger, isoformat_utc
from schemas.report_schemas import MRVReport

logger = get_logger(__name__)

SOFTWARE_VERSION = "0.1.0"


def report_id(state: Dict[str, Any]) -> str:
    """
    Stable for the same quantified result: re-running a season with the same
    inputs yields the same id, so report creation stays idempotent.
    """
    calc = state["emission_calculations"]
    digest = content_hash({
        "farm_id": state["farm_id"],
        "season_id": state["season_id"],
        "baseline": calc["baseline"]["total_ch4"],
        "project": calc["project"]["total_ch4"],
        "reduction": calc["reduction"],
    })
    return f"MRV_{state['farm_id']}_{state['season_id']}_{digest[:12]}"


def build_report(state: Dict[str, Any], settings) -> MRVReport:
    farm = state["farm_data"]
    season = state["season_data"]

    return MRVReport(
        id=report_id(state),
        farm_id=state["farm_id"],
        season_id=state["season_id"],
        methodology="IPCC 2019 Refinement",
        tier=settings.ipcc_tier,
        generated_at=isoformat_utc(),
        farm={
            "id": farm["id"],
            "name": farm.get("name"),
            "area": farm["area"],
            "location": {
                "village": farm.get("village"),
                "district": farm.get("district"),
                "state": farm.get("state"),
                "coordinates": farm.get("coordinates"),
            },
            "farmer": {"id": farm.get("farmer_id"), "name": farm.get("farmer_name")},
        },
        season={
            "id": season["id"],
            "season": season.get("season"),
            "year": season.get("year"),
            "crop": season.get("crop"),
            "farming_method": season.get("farming_method"),
            "dates": {
                "sowing": season.get("sowing_date"),
                "transplanting": season.get("transplant_date"),
                "harvest": season.get("harvest_date"),
            },
        },
        emissions=state["emission_calculations"],
        remote_sensing=state["remote_sensing_analysis"],
        quality_assurance=state["quality_assessment"],
        farmer_reported_data=state.get("farmer_logs") or [],
        metadata={
            "software_version": SOFTWARE_VERSION,
            "pipeline_pass": int(state.get("retry_count") or 0) + 1,
            "data_sources_count": {
                "satellite": len(state.get("satellite_data") or []),
                "farmer_logs": len(state.get("farmer_logs") or []),
            },
        },
    )


@stage_node(Stage.REPORT_GENERATION)
def node5_report(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
    require(state, "farm_data", "season_data", "remote_sensing_analysis", "emission_calculations", "quality_assessment")

    report = build_report(state, settings).model_dump(mode="json")
    database_id = call_with_timeout(services.reports.create, report, timeout=settings.call_timeout_seconds, label="ReportStore.create")

    logger.info("report=%s database_id=%s", report["id"], database_id)

    return {"mrv_report": {**report, "database_id": database_id}}
