"""
Shared fixtures: one 2 ha AWD farm season and stub collaborators.
All in-memory; no network and no API keys.
"""

import threading
import time
from datetime import date, timedelta

import pytest

from pipeline.config import PipelineSettings
from schemas.farm_schemas import Coordinates, Farm, FarmingMethod, IrrigationCycle, Season
from schemas.report_schemas import QualityAssessment
from schemas.sensing_schemas import SatelliteObservation, SensingAnalysis
from services.blockchain import InMemoryIssuanceLedger, SimulatedMinter
from services.registry import build_in_memory_services


class FixedSensing:
    """Returns a short series and a fixed confidence for whatever is declared."""

    def __init__(self, confidence=0.9, observed_method="AWD", on_fetch=None):
        self.confidence = confidence
        self.observed_method = observed_method
        self.on_fetch = on_fetch
        self.fetches = 0

    def fetch(self, farm_id, start, end):
        self.fetches += 1
        if self.on_fetch:
            self.on_fetch()
        return [
            SatelliteObservation(observed_on=start + timedelta(days=6 * i), vh_backscatter=-18.0 if i % 2 == 0 else -11.0, vv_backscatter=-24.0)
            for i in range(4)
        ]

    def analyze(self, series, geometry, declared_method=None):
        return SensingAnalysis(confidence=self.confidence, observed_method=self.observed_method, awd_cycles=1)


class FixedQA:
    def __init__(self, score, recommendation="NEEDS_REVIEW"):
        self.score = score
        self.recommendation = recommendation
        self.calls = 0

    def assess(self, bundle):
        self.calls += 1
        return QualityAssessment(score=self.score, recommendation=self.recommendation, data_completeness=1.0)


class CountingFarms:
    def __init__(self, farms, delay=0.0):
        self._farms = {f.id: f for f in farms}
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def get(self, farm_id):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return self._farms.get(farm_id)


class ScriptedValidator:
    def __init__(self, text):
        self.text = text
        self.prompts = []

    def review(self, system_prompt, question):
        self.prompts.append((system_prompt, question))
        return self.text


@pytest.fixture
def settings():
    return PipelineSettings(max_retries=2, call_timeout_seconds=2.0, mint_backoff_seconds=0)


@pytest.fixture
def farm():
    return Farm(
        id="F1",
        name="Test Field",
        farmer_id="FMR-1",
        farmer_name="Test Farmer",
        area=2.0,
        village="Kotla",
        district="Patiala",
        state="Punjab",
        coordinates=Coordinates(latitude=30.34, longitude=76.39),
        irrigation_type="canal",
    )


@pytest.fixture
def season():
    return Season(
        id="S1",
        farm_id="F1",
        season="kharif",
        year=2025,
        farming_method=FarmingMethod.AWD,
        sowing_date=date(2025, 6, 10),
        transplant_date=date(2025, 7, 5),
        harvest_date=date(2025, 10, 28),
        irrigation_cycles=[
            IrrigationCycle(start_date=date(2025, 7, 12), end_date=date(2025, 7, 18), event="drained"),
            IrrigationCycle(start_date=date(2025, 7, 5), end_date=date(2025, 7, 11), event="flooded", water_depth_cm=5.0),
        ],
    )


@pytest.fixture
def services(settings, farm, season):
    svc = build_in_memory_services(settings, farms=[farm], seasons=[season])
    svc.sensing = FixedSensing(confidence=0.9)
    return svc


class FlakyFarms(CountingFarms):
    """Only the first lookup is slow, so the retry pass recovers."""

    def get(self, farm_id):
        with self._lock:
            self.calls += 1
            first = self.calls == 1
        if first:
            time.sleep(self.delay)
        return self._farms.get(farm_id)


class SlowMinter(SimulatedMinter):
    def __init__(self, delay, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay

    def mint(self, quantity, tag):
        time.sleep(self.delay)
        return super().mint(quantity, tag)


class SlowLedger(InMemoryIssuanceLedger):
    def __init__(self, delay):
        super().__init__()
        self.delay = delay

    def lookup(self, farm_id, season_id):
        time.sleep(self.delay)
        return super().lookup(farm_id, season_id)
