from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from .models import TransactionRecord


class TransactionStore:
    """Read-only lookup of captured transactions by record id."""

    def get(self, record_id: str) -> Optional[TransactionRecord]:
        raise NotImplementedError("get must be implemented in subclasses")


class InMemoryTransactionStore(TransactionStore):
    def __init__(self, records: Iterable[TransactionRecord] = ()) -> None:
        self._records: Dict[str, TransactionRecord] = {}
        self.extend(records)

    def add(self, record: TransactionRecord) -> None:
        self._records[record.record_id] = record

    def extend(self, records: Iterable[TransactionRecord]) -> None:
        for record in records:
            self.add(record)

    def get(self, record_id: str) -> Optional[TransactionRecord]:
        return self._records.get(record_id)

    def ids(self) -> List[str]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)
