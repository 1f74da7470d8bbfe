"""
MRV Pipeline - Farm & Season Schemas
Pydantic models for the records resolved during ingestion.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from enum import Enum


class FarmingMethod(str, Enum):
    CONTINUOUS_FLOOD = "FLOOD"
    AWD = "AWD"            # alternate wetting and drying
    SRI = "SRI"            # system of rice intensification


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    polygon: List[List[float]] = Field(default_factory=list, description="[lon, lat] ring of the field boundary")


class Farm(BaseModel):
    id: str
    name: str
    farmer_id: str
    farmer_name: Optional[str] = None
    area: float = Field(gt=0, description="hectares")
    village: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    irrigation_type: Optional[str] = None


class IrrigationCycle(BaseModel):
    start_date: date
    end_date: Optional[date] = None
    event: str = Field(description="flooded, drained, or wetted")
    water_depth_cm: Optional[float] = None


class OrganicInput(BaseModel):
    input_type: str
    quantity: float = Field(ge=0, description="kg applied over the field")
    applied_on: Optional[date] = None


class Season(BaseModel):
    id: str
    farm_id: str
    season: str = Field(description="kharif or rabi")
    year: int
    crop: str = "rice"
    farming_method: FarmingMethod
    sowing_date: Optional[date] = None
    transplant_date: Optional[date] = None
    harvest_date: Optional[date] = None
    irrigation_cycles: List[IrrigationCycle] = []
    organic_inputs: List[OrganicInput] = []
