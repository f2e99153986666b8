from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence

from tqdm import tqdm

from .config import DEFAULT_LOGGER_NAME
from .models import ScanResult

BatchFn = Callable[[List[str]], List[ScanResult]]


def make_batches(record_ids: Sequence[str], batch_size: int) -> List[List[str]]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [list(record_ids[i:i + batch_size]) for i in range(0, len(record_ids), batch_size)]


def reconcile(batch: Sequence[str], results: List[ScanResult], duration: float = 0.0) -> List[ScanResult]:
    """Return exactly one result per id in ``batch``.

    Duplicates are dropped (first one wins) and ids the batch function forgot
    get an error result.
    """
    by_id: Dict[str, ScanResult] = {}
    wanted = set(batch)
    for result in results:
        if result.record_id in wanted and result.record_id not in by_id:
            by_id[result.record_id] = result
    out: List[ScanResult] = []
    seen = set()
    for record_id in batch:
        if record_id in seen:
            continue
        seen.add(record_id)
        out.append(by_id.get(record_id) or ScanResult(record_id=record_id, error="No result produced", duration=duration))
    return out


class BatchScheduler:
    def __init__(
        self,
        batch_size: int,
        max_parallel: int,
        *,
        logger: Optional[logging.Logger] = None,
        show_progress: bool = False,
        progress_desc: str = "Scanning batches",
    ) -> None:
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be >= 1, got {max_parallel}")
        self.batch_size = batch_size
        self.max_parallel = max_parallel
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("scheduler")
        self.show_progress = bool(show_progress)
        self.progress_desc = progress_desc

    def run(self, record_ids: Sequence[str], scan_batch: BatchFn) -> List[ScanResult]:
        # one result per id, so repeated ids are scanned once
        record_ids = list(dict.fromkeys(record_ids))
        batches = make_batches(record_ids, self.batch_size)
        if not batches:
            return []
        self.logger.info(
            "Scanning %d record(s) in %d batch(es), up to %d at a time",
            len(record_ids),
            len(batches),
            self.max_parallel,
        )

        results: List[ScanResult] = []
        running_total = 0
        progress_bar = None
        if self.show_progress:
            progress_bar = tqdm(total=len(batches), desc=self.progress_desc, unit="batch")

        executor = ThreadPoolExecutor(max_workers=self.max_parallel)
        try:
            futures = {executor.submit(self._timed, scan_batch, batch): (num, batch) for num, batch in enumerate(batches, start=1)}
            for future in as_completed(futures):
                num, batch = futures[future]
                try:
                    batch_results, duration = future.result()
                except Exception as exc:
                    self.logger.warning("Batch %d failed: %s", num, exc)
                    error = f"Batch failed: {exc}"
                    batch_results = [ScanResult(record_id=rid, error=error) for rid in batch]
                    duration = 0.0
                batch_results = reconcile(batch, batch_results, duration)
                found = sum(len(r.findings) for r in batch_results)
                running_total += found
                self.logger.info(
                    "Batch %d complete: %d finding(s) (running total: %d)", num, found, running_total
                )
                results.extend(batch_results)
                if progress_bar is not None:
                    progress_bar.update(1)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
            if progress_bar is not None:
                progress_bar.close()
        return results

    @staticmethod
    def _timed(scan_batch: BatchFn, batch: List[str]):
        start = time.monotonic()
        results = scan_batch(batch)
        return results, time.monotonic() - start
