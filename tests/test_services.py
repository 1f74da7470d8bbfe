from datetime import date

import pytest

from schemas.farm_schemas import FarmingMethod, OrganicInput
from schemas.sensing_schemas import FloodEvent, FloodStatus
from services.blockchain import InMemoryIssuanceLedger, SimulatedMinter
from services.emission_model import IPCCTier2Model, organic_scaling_factor
from services.llm_validator import extract_confidence, extract_discrepancies, extract_uncertainty
from services.quality import RuleBasedQAEvaluator, check_temporal_consistency
from services.remote_sensing import SimulatedSentinelProvider, count_awd_cycles, infer_method, method_confidence
from services.signing import HmacSigningService
from services.storage import InMemoryContentStore, InMemoryReportStore


# ---------- Emission model ----------

def test_ipcc_awd_two_hectares(farm, season):
    model = IPCCTier2Model()
    baseline = model.baseline(season, farm)
    project = model.project(season, farm, {"confidence": 0.9})

    assert baseline.total_ch4 == pytest.approx(2.6)
    assert project.total_ch4 == pytest.approx(1.352)
    assert project.scaling_factors.SFw == pytest.approx(0.52)


def test_low_confidence_is_conservative(farm, season):
    project = IPCCTier2Model().project(season, farm, {"confidence": 0.5})
    assert project.scaling_factors.SFw == pytest.approx(0.52 * 1.2)


def test_low_confidence_never_exceeds_baseline(farm, season):
    flood_season = season.model_copy(update={"farming_method": FarmingMethod.CONTINUOUS_FLOOD})
    project = IPCCTier2Model().project(flood_season, farm, {"confidence": 0.1})
    assert project.scaling_factors.SFw == 1.0


@pytest.mark.parametrize("quantities,expected", [
    ([], 1.0),
    ([100.0], 1.1),
    ([400.0, 200.0], 1.2),
    ([1200.0], 1.5),
])
def test_organic_scaling_factor(quantities, expected):
    inputs = [OrganicInput(input_type="manure", quantity=q) for q in quantities]
    assert organic_scaling_factor(inputs) == expected


def test_organic_inputs_scale_both_scenarios(farm, season):
    amended = season.model_copy(update={"organic_inputs": [OrganicInput(input_type="manure", quantity=800.0)]})
    model = IPCCTier2Model()
    assert model.baseline(amended, farm).total_ch4 == pytest.approx(2.6 * 1.2)
    assert model.project(amended, farm, {"confidence": 0.9}).total_ch4 == pytest.approx(1.352 * 1.2)


# ---------- Remote sensing ----------

def test_simulated_awd_series_is_detected():
    provider = SimulatedSentinelProvider({"F1": "AWD"})
    series = provider.fetch("F1", date(2025, 7, 5), date(2025, 10, 28))
    analysis = provider.analyze(series, None, declared_method="AWD")

    assert analysis.observed_method == "AWD"
    assert analysis.awd_cycles >= 2
    assert analysis.confidence == pytest.approx(0.95)


def test_simulated_flood_contradicts_declared_awd():
    provider = SimulatedSentinelProvider({"F9": "FLOOD"})
    series = provider.fetch("F9", date(2025, 7, 5), date(2025, 10, 28))
    analysis = provider.analyze(series, None, declared_method="AWD")

    assert analysis.observed_method == "FLOOD"
    assert analysis.dry_observations == 0
    assert analysis.confidence == pytest.approx(0.4)


def test_fetch_is_deterministic():
    provider = SimulatedSentinelProvider({"F1": "SRI"})
    a = provider.fetch("F1", date(2025, 7, 5), date(2025, 8, 5))
    b = provider.fetch("F1", date(2025, 7, 5), date(2025, 8, 5))
    assert a == b


def test_empty_series_has_zero_confidence():
    assert SimulatedSentinelProvider().analyze([], None).confidence == 0.0


def test_count_awd_cycles():
    d = date(2025, 7, 1)
    events = [
        FloodEvent(state=FloodStatus.FLOODED, start=d, end=d),
        FloodEvent(state=FloodStatus.DRY, start=d, end=d),
        FloodEvent(state=FloodStatus.FLOODED, start=d, end=d),
        FloodEvent(state=FloodStatus.DRY, start=d, end=d),
    ]
    assert count_awd_cycles(events) == 1


def test_infer_method_and_confidence():
    assert infer_method(1.0, 0) == "FLOOD"
    assert infer_method(0.1, 0) == "SRI"
    assert infer_method(0.5, 3) == "AWD"
    assert method_confidence("AWD", None, 1.0) == 0.8


# ---------- Quality assurance ----------

def _bundle(farm, season, confidence=0.9, baseline=2.6, project=1.352):
    return {
        "farm_data": farm.model_dump(mode="json"),
        "season_data": season.model_dump(mode="json"),
        "satellite_data": [{"observed_on": "2025-07-05"}],
        "remote_sensing_analysis": {"confidence": confidence, "declared_method": "AWD", "observed_method": "AWD"},
        "emission_calculations": {"baseline": {"total_ch4": baseline}, "project": {"total_ch4": project}},
    }


def test_clean_bundle_proceeds(farm, season):
    qa = RuleBasedQAEvaluator().assess(_bundle(farm, season))
    assert qa.score == 1.0
    assert qa.recommendation == "PROCEED"
    assert qa.flags == []
    assert qa.reduction_percentage == pytest.approx(48.0)


def test_low_confidence_needs_review(farm, season):
    qa = RuleBasedQAEvaluator().assess(_bundle(farm, season, confidence=0.4))
    assert qa.recommendation == "NEEDS_REVIEW"
    assert qa.score == pytest.approx(0.7)


def test_implausible_reduction_is_flagged(farm, season):
    qa = RuleBasedQAEvaluator().assess(_bundle(farm, season, project=0.2))
    assert "Unreasonably high emission reduction claimed" in qa.flags


def test_missing_satellite_data_lowers_completeness(farm, season):
    bundle = _bundle(farm, season)
    bundle["satellite_data"] = []
    qa = RuleBasedQAEvaluator().assess(bundle)
    assert qa.data_completeness == pytest.approx(6 / 7, rel=1e-3)


def test_temporal_consistency():
    assert check_temporal_consistency({"transplant_date": "2025-07-05", "harvest_date": "2025-08-01"}) == ["Unusually short growing season"]
    assert check_temporal_consistency({"sowing_date": "2025-08-01", "transplant_date": "2025-07-05"})
    assert check_temporal_consistency({"transplant_date": "2025-07-05", "harvest_date": "2025-10-28"}) == []


# ---------- Signing, storage, issuance ----------

def test_signature_round_trip():
    signer = HmacSigningService("secret")
    sig = signer.sign("abc")
    assert sig.startswith("0x")
    assert signer.verify("abc", sig)
    assert not signer.verify("abd", sig)
    assert not HmacSigningService("other").verify("abc", sig)


def test_signing_secret_required():
    with pytest.raises(ValueError):
        HmacSigningService("")


def test_content_store_is_content_addressed():
    store = InMemoryContentStore()
    address = store.put(b"report")
    assert address == store.put(b"report")
    assert store.get(address) == b"report"


def test_report_store_create_is_idempotent():
    store = InMemoryReportStore()
    first = store.create({"id": "R1"})
    assert store.create({"id": "R1"}) == first
    assert len(store) == 1


def test_minter_fail_first():
    minter = SimulatedMinter(fail_first=1)
    assert minter.mint(1.0, "tag").confirmed_block is None
    assert minter.mint(1.0, "tag").confirmed_block is not None
    assert minter.minted == [(1.0, "tag")]


def test_ledger_claim_is_exclusive():
    ledger = InMemoryIssuanceLedger()
    assert ledger.claim("F1", "S1")
    assert not ledger.claim("F1", "S1")

    ledger.release("F1", "S1")
    assert ledger.claim("F1", "S1")

    ledger.record("F1", "S1", {"tx_ref": "0x1"})
    assert not ledger.claim("F1", "S1")


def test_ledger_keeps_first_receipt():
    ledger = InMemoryIssuanceLedger()
    ledger.record("F1", "S1", {"tx_ref": "0x1"})
    ledger.record("F1", "S1", {"tx_ref": "0x2"})
    assert ledger.lookup("F1", "S1") == {"tx_ref": "0x1"}
    assert ledger.lookup("F1", "S2") is None


# ---------- Advisory text parsing ----------

def test_extract_confidence_variants():
    assert extract_confidence("Confidence: 85%") == pytest.approx(0.85)
    assert extract_confidence("confidence 0.6") == pytest.approx(0.6)
    assert extract_confidence("no number here") == 0.5
    assert extract_confidence("nothing", default=None) is None


def test_extract_uncertainty_and_discrepancies():
    text = "Uncertainty: 30%\nDiscrepancy: dry spell in week 3 not logged\nLooks fine otherwise"
    assert extract_uncertainty(text) == pytest.approx(0.3)
    assert extract_discrepancies(text) == ["Discrepancy: dry spell in week 3 not logged"]
