"""
MRV Pipeline - Emission Schemas
"""

from pydantic import BaseModel, Field
from typing import Optional


class ScalingFactors(BaseModel):
    SFw: float = Field(default=1.0, description="water regime during cultivation")
    SFp: float = Field(default=1.0, description="pre-season water regime")
    SFo: float = Field(default=1.0, description="organic amendments")


class EmissionEstimate(BaseModel):
    total_ch4: float = Field(ge=0, description="kg CH4 for the season")
    area: float
    emission_factor: float = Field(description="EFc, kg CH4/ha/season")
    scaling_factors: ScalingFactors
    methodology: str = "IPCC 2019 Refinement Tier 2"
    farming_method: Optional[str] = None


class EmissionReduction(BaseModel):
    ch4_kg: float = Field(ge=0)
    co2e_tonnes: float = Field(ge=0)
    percentage: float = 0.0
