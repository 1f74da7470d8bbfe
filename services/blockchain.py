"""
Simulated credit minter and the issuance ledger that guards against re-mints.
"""

import hashlib
import itertools
import threading
from typing import Any, Dict, List, Optional, Set, Tuple

from schemas.report_schemas import MintResult
from pipeline.utils import get_logger

logger = get_logger(__name__)


class SimulatedMinter:
    """
    Confirms every transaction in a fresh block. `fail_first` makes the first
    N attempts come back unconfirmed, to exercise the mint retry path.
    """

    def __init__(self, contract_address: str = "0xMRV0000000000000000000000000000000CREDIT", start_block: int = 1_000_000, fail_first: int = 0):
        self.contract_address = contract_address
        self._blocks = itertools.count(start_block)
        self._fail_remaining = fail_first
        self.minted: List[Tuple[float, str]] = []
        self.attempts = 0
        self._lock = threading.Lock()

    def mint(self, quantity: float, tag: str) -> MintResult:
        with self._lock:
            self.attempts += 1
            tx_ref = "0x" + hashlib.sha256(f"{tag}:{quantity}:{self.attempts}".encode("utf-8")).hexdigest()

            if self._fail_remaining > 0:
                self._fail_remaining -= 1
                logger.warning("mint tx=%s not confirmed (simulated)", tx_ref[:12])
                return MintResult(tx_ref=tx_ref, confirmed_block=None, contract_address=self.contract_address)

            self.minted.append((quantity, tag))
            return MintResult(tx_ref=tx_ref, confirmed_block=next(self._blocks), contract_address=self.contract_address)


class InMemoryIssuanceLedger:
    """
    `claim` reserves a (farm, season) for one minting run at a time; the
    claim ends with `record` on success or `release` on failure.
    """

    def __init__(self):
        self._receipts: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._claimed: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

    def claim(self, farm_id: str, season_id: str) -> bool:
        key = (farm_id, season_id)
        with self._lock:
            if key in self._receipts or key in self._claimed:
                return False
            self._claimed.add(key)
            return True

    def release(self, farm_id: str, season_id: str) -> None:
        with self._lock:
            self._claimed.discard((farm_id, season_id))

    def lookup(self, farm_id: str, season_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            receipt = self._receipts.get((farm_id, season_id))
            return dict(receipt) if receipt else None

    def record(self, farm_id: str, season_id: str, receipt: Dict[str, Any]) -> None:
        with self._lock:
            self._receipts.setdefault((farm_id, season_id), dict(receipt))
            self._claimed.discard((farm_id, season_id))
