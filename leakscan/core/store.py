from __future__ import annotations

import threading
import time
from typing import Dict, Iterable, List, Optional

from .models import Finding, Stats


class FindingsStore:
    """Process-lifetime store of normalized findings plus scan counters.

    Every mutation takes the lock once, so a reader never sees part of an
    ``add_many`` batch.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._findings: Dict[str, Finding] = {}
        self._total_scanned = 0
        self._last_scan_time: Optional[float] = None

    def add(self, finding: Finding) -> None:
        self.add_many([finding])

    def add_many(self, findings: Iterable[Finding]) -> int:
        items = list(findings)
        with self._lock:
            for finding in items:
                self._findings[finding.id] = finding
            if items:
                self._last_scan_time = time.time()
        return len(items)

    def get(self, finding_id: str) -> Optional[Finding]:
        with self._lock:
            return self._findings.get(finding_id)

    def get_all(self) -> List[Finding]:
        with self._lock:
            items = list(self._findings.values())
        return sorted(items, key=lambda f: f.timestamp, reverse=True)

    def get_by_record_id(self, record_id: str) -> List[Finding]:
        return [f for f in self.get_all() if f.record_id == record_id]

    def remove(self, finding_id: str) -> bool:
        with self._lock:
            return self._findings.pop(finding_id, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._findings)
            self._findings.clear()
            self._last_scan_time = time.time()
        return count

    def increment_scanned(self, count: int = 1) -> None:
        with self._lock:
            self._total_scanned += count
            self._last_scan_time = time.time()

    def get_stats(self) -> Stats:
        with self._lock:
            return Stats(
                total_scanned=self._total_scanned,
                total_findings=len(self._findings),
                last_scan_time=self._last_scan_time,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._findings)
