import hashlib
import json
from typing import Any, Dict

from agents.common import require, stage_node
from pipeline.errors import SignatureMismatch
from pipeline.state import Stage
from pipeline.utils import call_with_timeout, get_logger, isoformat_utc
from schemas.report_schemas import Attestation

logger = get_logger(__name__)


def canonical_bytes(payload: Any) -> bytes:
    """
    Canonical serialization used for hashing: sorted keys, no insignificant
    whitespace, UTF-8. Signing and verification must both go through here.
    """
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")


def content_hash(payload: Any) -> str:
    return hashlib.sha256(canonical_bytes(payload)).hexdigest()


def verify_attestation(report: Dict[str, Any], attestation: Dict[str, Any], signer) -> bool:
    """Recompute the report hash and check it against the attestation and its signature."""
    expected = content_hash(report)
    if attestation.get("report_hash") != expected:
        return False
    return signer.verify(expected, attestation.get("signature", ""))


@stage_node(Stage.ATTESTATION)
def node6_attestation(state: Dict[str, Any], services, settings) -> Dict[str, Any]:
    require(state, "mrv_report", "emission_calculations")

    report = state["mrv_report"]
    timeout = settings.call_timeout_seconds

    # 1. Canonical bytes -> hash
    payload = canonical_bytes(report)
    report_hash = hashlib.sha256(payload).hexdigest()

    # 2. Content-addressable copy of the exact bytes that were hashed
    address = call_with_timeout(services.content.put, payload, timeout=timeout, label="ContentStore.put")

    # 3. Sign the hash and check the signature round-trips
    signature = call_with_timeout(services.signer.sign, report_hash, timeout=timeout, label="SigningService.sign")

    attestation = Attestation(
        report_id=report["id"],
        report_hash=report_hash,
        content_address=address,
        signature=signature,
        verifier=settings.verifier_id,
        signed_at=isoformat_utc(),
        metadata={
            "farm_id": state["farm_id"],
            "season_id": state["season_id"],
            "co2e_reduction": state["emission_calculations"]["reduction"]["co2e_tonnes"],
            "bytes": len(payload),
        },
    ).model_dump(mode="json")

    if not verify_attestation(report, attestation, services.signer):
        raise SignatureMismatch(f"Signature for report {report['id']} does not verify against hash {report_hash[:12]}")

    logger.info("report=%s hash=%s address=%s", report["id"], report_hash[:12], address)

    return {"attestation": attestation}
