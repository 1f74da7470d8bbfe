"""
MRV Pipeline - QA, Report & Issuance Schemas
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class QualityCheck(BaseModel):
    check: str
    status: str = Field(description="PASS, WARN or FAIL")
    detail: str = ""


class QualityAssessment(BaseModel):
    score: float = Field(ge=0, le=1)
    recommendation: str
    flags: List[str] = []
    warnings: List[str] = []
    data_completeness: float = Field(ge=0, le=1)
    reduction_percentage: float = 0.0
    checks: List[QualityCheck] = []


class MRVReport(BaseModel):
    id: str
    farm_id: str
    season_id: str
    report_type: str = "EMISSION_CALCULATION"
    methodology: str = "IPCC 2019 Refinement"
    tier: int = 2
    generated_at: str
    farm: Dict[str, Any]
    season: Dict[str, Any]
    emissions: Dict[str, Any]
    remote_sensing: Dict[str, Any]
    quality_assurance: Dict[str, Any]
    farmer_reported_data: List[Dict[str, Any]] = []
    metadata: Dict[str, Any] = {}


class Attestation(BaseModel):
    report_id: str
    report_hash: str = Field(description="sha256 of the canonical report bytes")
    content_address: str
    signature: str
    algorithm: str = "HMAC-SHA256"
    verifier: str
    signed_at: str
    metadata: Dict[str, Any] = {}


class MintResult(BaseModel):
    tx_ref: str
    confirmed_block: Optional[int] = None
    contract_address: Optional[str] = None


class BlockchainReceipt(BaseModel):
    tx_ref: str
    confirmed_block: int
    contract_address: Optional[str] = None
    token_id: str
    quantity: float
    unit: str = "kg CH4"
    co2e_tonnes: float
    tag: str
    vintage: Optional[int] = None
    minted_at: str
