from typing import Any, Dict

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from agents.common import require, stage_node
from pipeline.errors import MintFailure
from pipeline.state import Stage
from pipeline.utils import call_with_timeout, get_logger, isoformat_utc
from schemas.report_schemas import BlockchainReceipt, MintResult

logger = get_logger(__name__)


def mint_with_retry(minter, quantity: float, tag: str, settings) -> MintResult:
    """
    Stage-local retry for unconfirmed transactions. Earlier stages are not
    re-run; timeouts are not retried because the transaction may have landed.
    """
    retryer = Retrying(
        stop=stop_after_attempt(settings.mint_max_attempts),
        wait=wait_exponential(multiplier=settings.mint_backoff_seconds, min=0, max=30),
        retry=retry_if_exception_type(MintFailure),
        reraise=True,
    )
    for attempt in retryer:
        with attempt:
            n = attempt.retry_state.attempt_number
            result = call_with_timeout(minter.mint, quantity, tag, timeout=settings.mint_timeout_seconds, label="BlockchainMinter.mint")
            if result.confirmed_block is None:
                logger.warning("mint attempt %d/%d unconfirmed tx=%s", n, settings.mint_max_attempts, result.tx_ref)
                raise MintFailure(f"Mint transaction {result.tx_ref} not confirmed after attempt {n}")
    return result


def _reuse_receipt(receipt: Dict[str, Any], farm_id: str, season_id: str) -> Dict[str, Any]:
    logger.info("season already minted farm=%s season=%s tx=%s, reusing receipt", farm_id, season_id, receipt.get("tx_ref"))
    return {"blockchain_receipt": receipt, "is_complete": True}


def _release_claim(ledger, farm_id: str, season_id: str, timeout: float) -> None:
    try:
        call_with_timeout(ledger.release, farm_id, season_id, timeout=timeout, label="IssuanceLedger.release")
    except Exception as e:
        logger.error("could not release issuance claim farm=%s season=%s: %s", farm_id, season_id, e)


@stage_node(Stage.BLOCKCHAIN_MINT)
def node7_mint(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
    require(state, "attestation", "emission_calculations")

    farm_id = state["farm_id"]
    season_id = state["season_id"]

    ledger = services.ledger
    timeout = settings.call_timeout_seconds

    # 1. Never issue twice for the same season
    existing = call_with_timeout(ledger.lookup, farm_id, season_id, timeout=timeout, label="IssuanceLedger.lookup")
    if existing:
        return _reuse_receipt(existing, farm_id, season_id)

    reduction = state["emission_calculations"]["reduction"]
    quantity = reduction["ch4_kg"]
    if quantity <= 0:
        raise MintFailure("Nothing to mint: computed reduction is zero")

    tag = state["attestation"]["report_hash"]

    # 2. Reserve the season so a concurrent run cannot mint it too
    if not call_with_timeout(ledger.claim, farm_id, season_id, timeout=timeout, label="IssuanceLedger.claim"):
        existing = call_with_timeout(ledger.lookup, farm_id, season_id, timeout=timeout, label="IssuanceLedger.lookup")
        if existing:
            return _reuse_receipt(existing, farm_id, season_id)
        raise MintFailure(f"Issuance for farm {farm_id} season {season_id} is already in progress")

    # 3. Mint, retrying unconfirmed transactions
    try:
        result = mint_with_retry(services.minter, quantity, tag, settings)
    except Exception:
        _release_claim(ledger, farm_id, season_id, timeout)
        raise

    season = state.get("season_data") or {}
    receipt = BlockchainReceipt(
        tx_ref=result.tx_ref,
        confirmed_block=result.confirmed_block,
        contract_address=result.contract_address,
        token_id=f"{farm_id}_{season_id}",
        quantity=quantity,
        co2e_tonnes=reduction["co2e_tonnes"],
        tag=tag,
        vintage=season.get("year"),
        minted_at=isoformat_utc(),
    ).model_dump(mode="json")

    # 4. Remember the issuance, which also ends the claim
    call_with_timeout(ledger.record, farm_id, season_id, receipt, timeout=timeout, label="IssuanceLedger.record")

    logger.info("minted quantity=%.6f kgCH4 tx=%s block=%s", quantity, result.tx_ref, result.confirmed_block)

    return {"blockchain_receipt": receipt, "is_complete": True}
