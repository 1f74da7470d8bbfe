"""
MRV Pipeline - Collaborator Interfaces
Everything a stage talks to is passed in through `Services`; nothing is
instantiated inside the stages themselves.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from schemas.emission_schemas import EmissionEstimate
from schemas.farm_schemas import Farm, Season
from schemas.report_schemas import MintResult, QualityAssessment
from schemas.sensing_schemas import SatelliteObservation, SensingAnalysis


class FarmRepository(Protocol):
    def get(self, farm_id: str) -> Optional[Farm]: ...


class SeasonRepository(Protocol):
    def get(self, season_id: str) -> Optional[Season]: ...


class RemoteSensingProvider(Protocol):
    def fetch(self, farm_id: str, start: date, end: date) -> List[SatelliteObservation]: ...

    def analyze(
        self,
        series: List[SatelliteObservation],
        geometry: Optional[Dict[str, Any]],
        declared_method: Optional[str] = None,
    ) -> SensingAnalysis: ...


class EmissionModel(Protocol):
    def baseline(self, season: Season, farm: Farm) -> EmissionEstimate: ...

    def project(self, season: Season, farm: Farm, analysis: Dict[str, Any]) -> EmissionEstimate: ...


class QAEvaluator(Protocol):
    def assess(self, bundle: Dict[str, Any]) -> QualityAssessment: ...


class ReportStore(Protocol):
    def create(self, report: Dict[str, Any]) -> str: ...


class ContentStore(Protocol):
    def put(self, data: bytes) -> str: ...


class SigningService(Protocol):
    def sign(self, content_hash: str) -> str: ...

    def verify(self, content_hash: str, signature: str) -> bool: ...


class BlockchainMinter(Protocol):
    def mint(self, quantity: float, tag: str) -> MintResult: ...


class IssuanceLedger(Protocol):
    """Remembers confirmed issuances so a season is never minted twice."""

    def lookup(self, farm_id: str, season_id: str) -> Optional[Dict[str, Any]]: ...

    def claim(self, farm_id: str, season_id: str) -> bool:
        """Atomically reserve an unissued season; False if issued or already claimed."""
        ...

    def release(self, farm_id: str, season_id: str) -> None: ...

    def record(self, farm_id: str, season_id: str, receipt: Dict[str, Any]) -> None: ...


class NaturalLanguageValidator(Protocol):
    """Advisory cross-check. Returns free text, never a decision."""

    def review(self, system_prompt: str, question: str) -> str: ...


@dataclass
class Services:
    farms: FarmRepository
    seasons: SeasonRepository
    sensing: RemoteSensingProvider
    emission_model: EmissionModel
    qa: QAEvaluator
    reports: ReportStore
    content: ContentStore
    signer: SigningService
    minter: BlockchainMinter
    ledger: IssuanceLedger
    validator: Optional[NaturalLanguageValidator] = None
