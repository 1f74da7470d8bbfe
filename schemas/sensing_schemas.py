"""
MRV Pipeline - Remote Sensing Schemas
Satellite observations and the flood/dry timeline derived from them.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from enum import Enum


class FloodStatus(str, Enum):
    FLOODED = "FLOODED"
    DRY = "DRY"


class SatelliteObservation(BaseModel):
    observed_on: date
    satellite: str = "Sentinel-1"
    vh_backscatter: float = Field(description="dB")
    vv_backscatter: float = Field(description="dB")
    flood_status: Optional[FloodStatus] = None


class FloodEvent(BaseModel):
    state: FloodStatus
    start: date
    end: date
    observations: int = 1


class SensingAnalysis(BaseModel):
    """What a remote-sensing provider returns from `analyze`."""
    events: List[FloodEvent] = []
    flood_observations: int = 0
    dry_observations: int = 0
    awd_cycles: int = 0
    observed_method: Optional[str] = None
    confidence: float = Field(ge=0, le=1)
    methodology: str = "SAR backscatter analysis"
