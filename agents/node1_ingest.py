from typing import Any, Dict, List

from agents.common import stage_node
from pipeline.errors import MissingRecord
from pipeline.state import Stage
from pipeline.utils import call_with_timeout, get_logger
from schemas.farm_schemas import Season

logger = get_logger(__name__)


def collect_farmer_logs(season: Season) -> List[Dict[str, Any]]:
    """
    Flatten farmer-submitted irrigation cycles and organic inputs into one
    chronological list. Each entry is tagged with its `kind`.
    """
    logs = []
    for cycle in season.irrigation_cycles:
        logs.append({"kind": "irrigation", **cycle.model_dump(mode="json")})
    for item in season.organic_inputs:
        logs.append({"kind": "organic_input", **item.model_dump(mode="json")})

    logs.sort(key=lambda entry: entry.get("start_date") or entry.get("applied_on") or "")
    return logs


@stage_node(Stage.INGESTION)
def node1_ingest(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
    farm_id = state["farm_id"]
    season_id = state["season_id"]
    timeout = settings.call_timeout_seconds

    # 1. Farm record
    farm = call_with_timeout(services.farms.get, farm_id, timeout=timeout, label="FarmRepository.get")
    if farm is None:
        raise MissingRecord(f"Farm {farm_id} not found")

    # 2. Season record
    season = call_with_timeout(services.seasons.get, season_id, timeout=timeout, label="SeasonRepository.get")
    if season is None:
        raise MissingRecord(f"Farming season {season_id} not found")
    if season.farm_id != farm.id:
        raise MissingRecord(f"Season {season_id} does not belong to farm {farm_id}")

    # 3. Farmer logs (may be empty)
    farmer_logs = collect_farmer_logs(season)

    logger.info(
        "farm=%s area=%.2fha method=%s season=%s %s logs=%d",
        farm.id, farm.area, season.farming_method.value, season.season, season.year, len(farmer_logs),
    )

    return {
        "farm_data": farm.model_dump(mode="json"),
        "season_data": season.model_dump(mode="json"),
        "farmer_logs": farmer_logs,
    }
