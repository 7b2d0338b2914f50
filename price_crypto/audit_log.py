"""
price_crypto — Diagnostics Ledger
===================================

Append-only, hash-chained record of codec events.

The codec itself is stateless.  Callers that want an event trail pass an
``AuditLog`` into ``parse_keys`` / ``encrypt_price`` / ``decrypt_price``;
each call appends at most one entry and keeps no reference afterwards.

SECURITY RATIONALE:
  - Integrity failures are recorded with their *specific* reason
    (e.g. "tag mismatch") here, while the exception raised to the caller
    stays generic.  The ledger is an internal artifact.
  - Secrets never enter the ledger: entries carrying key material, pads or
    clear prices are refused at append time.
  - Every entry is chained to its predecessor, so edits after the fact are
    detectable with ``verify_integrity()``.

MOCK NOTICE:
In-memory list only.  Deployments that need durable diagnostics should
drain ``dump()`` into their own store.
"""

import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Field names that would leak secrets or clear prices into the ledger.
FORBIDDEN_FIELDS = frozenset({
    "integrity_key", "encryption_key", "pad", "price", "price_bytes",
})


@dataclass
class AuditEntry:
    """A single ledger entry: sequence index, timestamp, event data, chain hashes."""
    index: int
    timestamp: float
    data: Dict[str, Any]
    prev_hash: str
    entry_hash: str = ""

    def compute_hash(self) -> str:
        content = json.dumps({
            "index": self.index,
            "timestamp": self.timestamp,
            "data": self.data,
            "prev_hash": self.prev_hash,
        }, sort_keys=True, default=str)
        return hashlib.sha256(content.encode()).hexdigest()


class AuditLog:
    """Append-only diagnostics ledger with hash-chain integrity."""

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._genesis_hash = hashlib.sha256(b"PRICE-CRYPTO-GENESIS").hexdigest()

    def append_entry(self, data: Dict[str, Any]) -> AuditEntry:
        """
        Append *data* as a new entry.

        Raises ``ValueError`` if *data* carries any of ``FORBIDDEN_FIELDS``.
        The timestamp is taken at write time, not supplied by the caller.
        """
        leaked = FORBIDDEN_FIELDS.intersection(data)
        if leaked:
            raise ValueError(
                f"refusing to record secret fields: {', '.join(sorted(leaked))}"
            )

        prev_hash = self._entries[-1].entry_hash if self._entries else self._genesis_hash
        entry = AuditEntry(
            index=len(self._entries),
            timestamp=time.time(),
            data=dict(data),
            prev_hash=prev_hash,
        )
        entry.entry_hash = entry.compute_hash()
        self._entries.append(entry)
        return entry

    def verify_integrity(self) -> bool:
        """Recompute every hash and check the chain; False on any tampering."""
        prev_hash = self._genesis_hash
        for entry in self._entries:
            if entry.entry_hash != entry.compute_hash():
                return False
            if entry.prev_hash != prev_hash:
                return False
            prev_hash = entry.entry_hash
        return True

    def get_entries(
        self,
        source: Optional[str] = None,
        event: Optional[str] = None,
        cause: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[AuditEntry]:
        """Query entries, optionally filtered by source, event and error cause."""
        results = self._entries

        if source:
            results = [e for e in results if e.data.get("source") == source]
        if event:
            results = [e for e in results if e.data.get("event") == event]
        if cause:
            results = [e for e in results if e.data.get("cause") == cause]
        if limit:
            results = results[-limit:]

        return results

    def __len__(self):
        return len(self._entries)

    def dump(self) -> List[Dict[str, Any]]:
        """Export the ledger as plain dicts, with hashes abbreviated."""
        return [
            {
                "index": e.index,
                "timestamp": e.timestamp,
                "data": e.data,
                "prev_hash": e.prev_hash[:16] + "...",
                "entry_hash": e.entry_hash[:16] + "...",
            }
            for e in self._entries
        ]
