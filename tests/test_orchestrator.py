import threading

import pytest

from pipeline.config import PipelineSettings
from pipeline.graph import MRVOrchestrator, run_pipeline
from pipeline.state import RunStatus
from services.blockchain import SimulatedMinter
from services.registry import build_in_memory_services, build_scenario_services
from data.synthetic_generator import generate_scenario_awd, generate_scenario_flood, generate_scenario_misreported

from conftest import CountingFarms, FixedQA, FixedSensing, FlakyFarms, SlowMinter


def test_end_to_end_awd_season_is_minted(services, settings):
    result = run_pipeline("F1", "S1", services, settings)

    assert result["errors"] == []
    assert result["status"] == RunStatus.MINTED
    assert result["is_complete"] is True

    calc = result["emission_calculations"]
    assert calc["baseline"]["total_ch4"] == pytest.approx(2.6)
    assert calc["project"]["total_ch4"] == pytest.approx(1.352)
    assert calc["reduction"]["ch4_kg"] == pytest.approx(1.248)

    assert services.minter.minted == [(pytest.approx(1.248), result["attestation"]["report_hash"])]
    assert result["blockchain_receipt"]["confirmed_block"] is not None
    assert result["mrv_report"]["database_id"]


def test_retry_loop_is_bounded(services, farm):
    settings = PipelineSettings(max_retries=2, mint_backoff_seconds=0)
    services.farms = CountingFarms([farm])
    services.qa = FixedQA(0.7)

    result = run_pipeline("F1", "S1", services, settings)

    assert services.farms.calls == 3
    assert services.qa.calls == 3
    assert result["retry_count"] == 2
    assert result["status"] == RunStatus.FAILED
    assert result["is_complete"] is False
    assert result["blockchain_receipt"] is None
    assert any("after 2 retries" in e for e in result["errors"])


def test_zero_retries_runs_once(services, farm):
    settings = PipelineSettings(max_retries=0, mint_backoff_seconds=0)
    services.qa = FixedQA(0.7)

    result = run_pipeline("F1", "S1", services, settings)

    assert services.qa.calls == 1
    assert result["status"] == RunStatus.FAILED


def test_high_score_without_approval_retries(services, settings):
    services.qa = FixedQA(0.95, recommendation="NEEDS_REVIEW")
    result = run_pipeline("F1", "S1", services, settings)
    assert services.qa.calls == settings.max_retries + 1
    assert result["status"] == RunStatus.FAILED


def test_low_score_fails_without_retry(services, settings):
    services.qa = FixedQA(0.4)
    result = run_pipeline("F1", "S1", services, settings)

    assert services.qa.calls == 1
    assert result["retry_count"] == 0
    assert result["status"] == RunStatus.FAILED
    assert result["mrv_report"] is None
    assert result["errors"][-1].startswith("QualityRejected")


def test_rejecting_recommendation_is_never_minted(services, settings):
    services.qa = FixedQA(0.9, recommendation="DISAPPROVE")
    result = run_pipeline("F1", "S1", services, settings)

    assert result["status"] == RunStatus.FAILED
    assert result["mrv_report"] is None
    assert services.minter.minted == []


def test_second_run_does_not_mint_again(services, settings):
    orchestrator = MRVOrchestrator(services, settings)
    first = orchestrator.run("F1", "S1")
    second = orchestrator.run("F1", "S1")

    assert len(services.minter.minted) == 1
    assert second["status"] == RunStatus.MINTED
    assert second["blockchain_receipt"]["tx_ref"] == first["blockchain_receipt"]["tx_ref"]
    assert second["mrv_report"]["database_id"] == first["mrv_report"]["database_id"]
    assert len(services.reports) == 1


def test_missing_record_halts_immediately(services, settings):
    result = run_pipeline("F404", "S1", services, settings)

    assert result["status"] == RunStatus.FAILED
    assert result["retry_count"] == 0
    assert result["errors"] == ["MissingRecord in data_ingestion: Farm F404 not found"]
    assert result["satellite_data"] is None


def test_collaborator_timeout_consumes_retries(services, farm):
    settings = PipelineSettings(max_retries=1, call_timeout_seconds=0.05, mint_backoff_seconds=0)
    services.farms = CountingFarms([farm], delay=0.3)

    result = run_pipeline("F1", "S1", services, settings)

    assert services.farms.calls == 2
    assert result["retry_count"] == 1
    assert result["status"] == RunStatus.FAILED
    assert len(result["errors"]) == 2
    assert all(e.startswith("CollaboratorTimeout in data_ingestion") for e in result["errors"])


def test_recovered_run_clears_failure(services, farm):
    settings = PipelineSettings(max_retries=1, call_timeout_seconds=0.1, mint_backoff_seconds=0)
    services.farms = FlakyFarms([farm], delay=0.5)

    result = run_pipeline("F1", "S1", services, settings)

    assert result["status"] == RunStatus.MINTED
    assert result["retry_count"] == 1
    assert result["failure"] is None
    assert len(result["errors"]) == 1
    assert result["errors"][0].startswith("CollaboratorTimeout in data_ingestion")


def test_overlapping_runs_mint_once(settings, farm, season):
    services = build_in_memory_services(settings, farms=[farm], seasons=[season], minter=SlowMinter(0.3))
    services.sensing = FixedSensing(confidence=0.9)
    results = []

    def run():
        results.append(MRVOrchestrator(services, settings).run("F1", "S1"))

    threads = [threading.Thread(target=run) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(services.minter.minted) == 1
    minted = [r for r in results if r["status"] == RunStatus.MINTED]
    assert minted
    assert {r["blockchain_receipt"]["tx_ref"] for r in minted} == {services.ledger.lookup("F1", "S1")["tx_ref"]}
    for r in results:
        if r["status"] == RunStatus.FAILED:
            assert "already in progress" in r["errors"][-1]


def test_cancellation_between_stages(services, settings):
    cancel = threading.Event()
    services.sensing = FixedSensing(confidence=0.9, on_fetch=cancel.set)

    result = run_pipeline("F1", "S1", services, settings, cancel_event=cancel)

    assert result["status"] == RunStatus.FAILED
    assert result["remote_sensing_analysis"] is not None
    assert result["emission_calculations"] is None
    assert result["errors"] == ["Cancelled after remote_sensing"]
    assert services.minter.minted == []


def test_unconfirmed_mint_is_retried(settings, farm, season):
    services = build_in_memory_services(settings, farms=[farm], seasons=[season], minter=SimulatedMinter(fail_first=2))
    services.sensing = FixedSensing(confidence=0.9)

    result = run_pipeline("F1", "S1", services, settings)

    assert result["status"] == RunStatus.MINTED
    assert services.minter.attempts == 3
    assert len(services.minter.minted) == 1


def test_mint_gives_up_after_max_attempts(farm, season):
    settings = PipelineSettings(max_retries=2, mint_max_attempts=2, mint_backoff_seconds=0)
    services = build_in_memory_services(settings, farms=[farm], seasons=[season], minter=SimulatedMinter(fail_first=5))
    services.sensing = FixedSensing(confidence=0.9)

    result = run_pipeline("F1", "S1", services, settings)

    assert services.minter.attempts == 2
    assert result["status"] == RunStatus.FAILED
    assert result["is_complete"] is False
    assert result["attestation"] is not None
    assert result["errors"][-1].startswith("MintFailure in blockchain_mint")


# ---------- Demo scenarios on the simulated satellite ----------

def test_awd_scenario_is_minted(settings):
    scenario = generate_scenario_awd()
    services = build_scenario_services(scenario, settings)
    result = run_pipeline(scenario["farm"]["id"], scenario["season"]["id"], services, settings)
    assert result["status"] == RunStatus.MINTED


def test_flood_scenario_has_nothing_to_mint(settings):
    scenario = generate_scenario_flood()
    services = build_scenario_services(scenario, settings)
    result = run_pipeline(scenario["farm"]["id"], scenario["season"]["id"], services, settings)

    assert result["status"] == RunStatus.FAILED
    assert result["emission_calculations"]["reduction"]["ch4_kg"] == 0
    assert "MintFailure" in result["errors"][-1]


def test_misreported_scenario_exhausts_retries(settings):
    scenario = generate_scenario_misreported()
    services = build_scenario_services(scenario, settings)
    result = run_pipeline(scenario["farm"]["id"], scenario["season"]["id"], services, settings)

    assert result["status"] == RunStatus.FAILED
    assert result["retry_count"] == settings.max_retries
    assert result["quality_assessment"]["recommendation"] == "NEEDS_REVIEW"
