from __future__ import annotations

import logging
import os
import time
from collections import defaultdict
from typing import Dict, List, Optional

from .config import DEFAULT_LOGGER_NAME
from .models import RawFinding, ScanResult
from .normalize import normalize_finding
from .transactions import TransactionStore


def _canonical(path: str) -> str:
    return os.path.normcase(os.path.realpath(path))


class FindingCorrelator:
    """Maps scanner findings back to records through their artifact paths."""

    def __init__(self, transactions: TransactionStore, *, logger: Optional[logging.Logger] = None) -> None:
        self.transactions = transactions
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("correlate")

    def group_by_path(self, raw_findings: List[RawFinding], artifact_map: Dict[str, str]) -> Dict[str, List[RawFinding]]:
        grouped: Dict[str, List[RawFinding]] = defaultdict(list)
        canonical = {_canonical(p): p for p in artifact_map}
        dropped = 0
        for raw in raw_findings:
            if raw.path in artifact_map:
                grouped[raw.path].append(raw)
                continue
            # the tool may have rewritten the path (symlinked tmp dirs, ./ prefixes)
            known = canonical.get(_canonical(raw.path))
            if known is not None:
                grouped[known].append(raw)
            else:
                dropped += 1
        if dropped:
            self.logger.warning("Dropped %d finding(s) reported for unknown paths", dropped)
        return grouped

    def correlate(
        self,
        raw_findings: List[RawFinding],
        artifact_map: Dict[str, str],
        *,
        duration: float,
        error: Optional[str] = None,
        raw_output: Optional[str] = None,
    ) -> List[ScanResult]:
        """Build exactly one ScanResult per artifact in ``artifact_map``."""
        grouped = self.group_by_path(raw_findings, artifact_map)
        now = time.time()
        results: List[ScanResult] = []
        for path, record_id in artifact_map.items():
            record = self.transactions.get(record_id)
            url = record.url if record is not None and record.url else "unknown"
            method = record.method if record is not None and record.method else "GET"
            findings = [
                normalize_finding(raw, record_id, url, method, timestamp=now)
                for raw in grouped.get(path, [])
            ]
            results.append(
                ScanResult(
                    record_id=record_id,
                    findings=findings,
                    error=error,
                    duration=duration,
                    raw_output=raw_output,
                )
            )
        return results
