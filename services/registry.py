"""
Wires the default in-process collaborators into a `Services` bundle.
"""

from typing import Any, Dict, Iterable, Optional

from pipeline.config import PipelineSettings
from pipeline.utils import get_logger
from schemas.farm_schemas import Farm, Season
from services.blockchain import InMemoryIssuanceLedger, SimulatedMinter
from services.emission_model import IPCCTier2Model
from services.interfaces import Services
from services.llm_validator import ChatOpenAIValidator
from services.quality import RuleBasedQAEvaluator
from services.remote_sensing import SimulatedSentinelProvider
from services.repositories import InMemoryFarmRepository, InMemorySeasonRepository
from services.signing import HmacSigningService
from services.storage import InMemoryContentStore, InMemoryReportStore

logger = get_logger(__name__)


def build_in_memory_services(
    settings: PipelineSettings,
    farms: Iterable[Farm] = (),
    seasons: Iterable[Season] = (),
    practices: Optional[Dict[str, str]] = None,
    validator=None,
    minter=None,
) -> Services:
    return Services(
        farms=InMemoryFarmRepository(farms),
        seasons=InMemorySeasonRepository(seasons),
        sensing=SimulatedSentinelProvider(practices),
        emission_model=IPCCTier2Model.from_settings(settings),
        qa=RuleBasedQAEvaluator(),
        reports=InMemoryReportStore(),
        content=InMemoryContentStore(),
        signer=HmacSigningService(settings.signing_secret),
        minter=minter or SimulatedMinter(),
        ledger=InMemoryIssuanceLedger(),
        validator=validator,
    )


def build_scenario_services(scenario: Dict[str, Any], settings: PipelineSettings) -> Services:
    """
    Services for one demo scenario file. The advisory validator is attached
    only when an OpenAI key is configured.
    """
    farm = Farm.model_validate(scenario["farm"])
    season = Season.model_validate(scenario["season"])
    practice = scenario.get("observed_practice") or season.farming_method.value

    logger.info(
        "scenario=%s farm=%s declared=%s observed=%s",
        scenario.get("scenario_id"), farm.id, season.farming_method.value, practice,
    )

    return build_in_memory_services(
        settings,
        farms=[farm],
        seasons=[season],
        practices={farm.id: practice},
        validator=ChatOpenAIValidator.from_settings(settings),
    )
