"""Run-scoped listing accumulator with first-seen-wins deduplication."""

from __future__ import annotations

import logging
import threading

from ..models.listing import ListingRecord

logger = logging.getLogger(__name__)


class ListingAccumulator:
    """Collects records across every page of one scan run.

    The first record inserted for an identifier is kept; later records with
    the same identifier are dropped. Inserts are serialized, so worker threads
    may share one accumulator, though the scan driver inserts from a single
    coordinating task anyway.
    """

    def __init__(self):
        self._records: dict[str, ListingRecord] = {}
        self._pending: list[ListingRecord] = []
        self._lock = threading.Lock()
        self.duplicates = 0

    def insert(self, record: ListingRecord) -> bool:
        """Add a record unless its identifier was already seen.

        Returns:
            True if the record was added, False if it was a duplicate.
        """
        with self._lock:
            if record.identifier in self._records:
                self.duplicates += 1
                logger.debug(f"Dropping duplicate listing {record.identifier}")
                return False
            self._records[record.identifier] = record
            self._pending.append(record)
            return True

    def all(self) -> list[ListingRecord]:
        """Every accepted record, in insertion order."""
        with self._lock:
            return list(self._records.values())

    def drain_pending(self) -> list[ListingRecord]:
        """Records inserted since the last drain, for flushing to storage."""
        with self._lock:
            pending, self._pending = self._pending, []
            return pending

    @property
    def inserted(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._records

    def __repr__(self) -> str:
        return f"ListingAccumulator({len(self)} listings, {self.duplicates} duplicates dropped)"
