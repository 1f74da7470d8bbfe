"""
MRV Pipeline - Workflow State Definition
Complete pipeline state passed between LangGraph nodes.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Optional
from typing_extensions import TypedDict

from pipeline.reducers import clearable_override, concat, override_if_present, tri_state_override


class Stage(str, Enum):
    INGESTION = "data_ingestion"
    REMOTE_SENSING = "remote_sensing"
    EMISSION_MODELING = "emission_modeling"
    QUALITY_ASSURANCE = "quality_assurance"
    REPORT_GENERATION = "report_generation"
    ATTESTATION = "attestation"
    BLOCKCHAIN_MINT = "blockchain_mint"


class RunStatus(str, Enum):
    START = "start"
    INGESTED = "ingested"
    SENSED = "sensed"
    MODELED = "modeled"
    ASSESSED = "assessed"
    REPORTED = "reported"
    ATTESTED = "attested"
    MINTED = "minted"
    FAILED = "failed"


# Lifecycle state reached when each stage succeeds
STAGE_SUCCESS_STATUS = {
    Stage.INGESTION: RunStatus.INGESTED,
    Stage.REMOTE_SENSING: RunStatus.SENSED,
    Stage.EMISSION_MODELING: RunStatus.MODELED,
    Stage.QUALITY_ASSURANCE: RunStatus.ASSESSED,
    Stage.REPORT_GENERATION: RunStatus.REPORTED,
    Stage.ATTESTATION: RunStatus.ATTESTED,
    Stage.BLOCKCHAIN_MINT: RunStatus.MINTED,
}

TERMINAL_STATUSES = frozenset({RunStatus.MINTED, RunStatus.FAILED})


class WorkflowState(TypedDict):
    """
    Complete pipeline state. Each node reads the whole state and returns a
    partial patch; every field declares exactly one reducer.
    """

    # Run identity (caller inputs)
    farm_id: Annotated[str, override_if_present]
    season_id: Annotated[str, override_if_present]

    # Ingestion
    farm_data: Annotated[Optional[Dict[str, Any]], override_if_present]
    season_data: Annotated[Optional[Dict[str, Any]], override_if_present]
    farmer_logs: Annotated[Optional[List[Dict[str, Any]]], override_if_present]

    # Remote sensing
    satellite_data: Annotated[Optional[List[Dict[str, Any]]], override_if_present]
    remote_sensing_analysis: Annotated[Optional[Dict[str, Any]], override_if_present]

    # Modeling + QA
    emission_calculations: Annotated[Optional[Dict[str, Any]], override_if_present]
    quality_assessment: Annotated[Optional[Dict[str, Any]], override_if_present]

    # Reporting + issuance
    mrv_report: Annotated[Optional[Dict[str, Any]], override_if_present]
    attestation: Annotated[Optional[Dict[str, Any]], override_if_present]
    blockchain_receipt: Annotated[Optional[Dict[str, Any]], override_if_present]

    # Control fields
    errors: Annotated[List[str], concat]
    current_step: Annotated[Optional[Stage], override_if_present]
    is_complete: Annotated[Optional[bool], tri_state_override]
    status: Annotated[RunStatus, override_if_present]
    failure: Annotated[Optional[Dict[str, Any]], clearable_override]
    retry_count: Annotated[int, override_if_present]


def new_state(farm_id: str, season_id: str) -> WorkflowState:
    if not farm_id or not season_id:
        raise ValueError("farm_id and season_id are required")

    return {
        "farm_id": farm_id,
        "season_id": season_id,
        "farm_data": None,
        "season_data": None,
        "farmer_logs": None,
        "satellite_data": None,
        "remote_sensing_analysis": None,
        "emission_calculations": None,
        "quality_assessment": None,
        "mrv_report": None,
        "attestation": None,
        "blockchain_receipt": None,
        "errors": [],
        "current_step": None,
        "is_complete": False,
        "status": RunStatus.START,
        "failure": None,
        "retry_count": 0,
    }
