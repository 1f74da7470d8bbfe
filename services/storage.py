"""
In-memory report store and content-addressable blob store.
"""

import hashlib
import threading
import uuid
from typing import Any, Dict, Optional


class InMemoryReportStore:
    """Creates are idempotent per report id: a re-run gets the same database id back."""

    def __init__(self):
        self._by_report_id: Dict[str, str] = {}
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(self, report: Dict[str, Any]) -> str:
        with self._lock:
            existing = self._by_report_id.get(report["id"])
            if existing:
                return existing
            db_id = uuid.uuid4().hex
            self._by_report_id[report["id"]] = db_id
            self._records[db_id] = dict(report)
            return db_id

    def get(self, db_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._records.get(db_id)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryContentStore:
    """Blobs are addressed by their sha256 digest, so puts are naturally idempotent."""

    def __init__(self, prefix: str = "sha256-"):
        self.prefix = prefix
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes) -> str:
        address = self.prefix + hashlib.sha256(data).hexdigest()
        with self._lock:
            self._blobs.setdefault(address, bytes(data))
        return address

    def get(self, address: str) -> Optional[bytes]:
        with self._lock:
            return self._blobs.get(address)
