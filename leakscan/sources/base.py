from __future__ import annotations
from pathlib import Path
from typing import Iterator, List
from ..core.models import TransactionRecord


class RecordSource:
    NAME = "base"
    SUPPORTED_EXTENSIONS: List[str] = []  # override in subclasses

    def load(self, path: Path) -> Iterator[TransactionRecord]:
        raise NotImplementedError("load must be implemented in subclasses")
