from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .artifacts import ArtifactBatch, ArtifactWriter
from .config import DEFAULT_LOGGER_NAME, ScanConfig
from .correlate import FindingCorrelator
from .errors import ArtifactWriteFailed, ProcessSpawnFailed, ProcessTimeout, RecordNotFound
from .models import ScanResult
from .output import parse_output
from .runner import ProcessOutput, ScanProcessRunner
from .scheduler import BatchScheduler
from .transactions import TransactionStore

VERSION_RE = re.compile(r"(\d+\.\d+\.\d+)")


@dataclass(frozen=True)
class ScannerCapabilities:
    path: str
    version: Optional[str] = None
    supports_format: bool = False


class ScannerProbe:
    """Memoized ``--version`` / ``scan --help`` probe.

    The first caller runs the probe while holding the lock; concurrent callers
    wait and then reuse its answer. ``invalidate`` forces a new probe, e.g.
    after the binary was reinstalled.
    """

    def __init__(self, runner: ScanProcessRunner, timeout: float, *, logger: Optional[logging.Logger] = None) -> None:
        self.runner = runner
        self.timeout = timeout
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("probe")
        self._lock = threading.Lock()
        self._cached: Optional[ScannerCapabilities] = None

    def get(self, binary: str) -> ScannerCapabilities:
        with self._lock:
            if self._cached is None or self._cached.path != binary:
                self._cached = self._probe(binary)
            return self._cached

    def cached(self) -> Optional[ScannerCapabilities]:
        with self._lock:
            return self._cached

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None

    def _run(self, binary: str, args: List[str]) -> Optional[ProcessOutput]:
        try:
            return self.runner.run(binary, args, timeout=self.timeout)
        except ProcessSpawnFailed as exc:
            self.logger.warning("%s", exc)
            return None

    def _probe(self, binary: str) -> ScannerCapabilities:
        version: Optional[str] = None
        out = self._run(binary, ["--version"])
        if out is not None:
            m = VERSION_RE.search(out.stdout) or VERSION_RE.search(out.stderr)
            version = m.group(1) if m else "unknown"

        supports_format = False
        out = self._run(binary, ["scan", "--help"])
        if out is not None:
            supports_format = "--format" in out.stdout or "--format" in out.stderr

        self.logger.info("Scanner %s: version=%s, --format=%s", binary, version, supports_format)
        return ScannerCapabilities(path=binary, version=version, supports_format=supports_format)


def _read_output_file(path: str) -> Optional[str]:
    p = Path(path)
    if not p.exists():
        return None
    return p.read_text(encoding="utf-8", errors="replace")


class BatchScanner:
    """Runs the artifact → subprocess → parse → correlate pipeline per batch."""

    def __init__(
        self,
        config: ScanConfig,
        transactions: TransactionStore,
        *,
        runner: Optional[ScanProcessRunner] = None,
        writer: Optional[ArtifactWriter] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.transactions = transactions
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("scanner")
        self.runner = runner or ScanProcessRunner(logger=base_logger)
        self.writer = writer or ArtifactWriter(config.scratch_dir, logger=base_logger)
        self.correlator = FindingCorrelator(transactions, logger=base_logger)
        self.scheduler = BatchScheduler(
            config.batch_size,
            config.max_parallel,
            logger=base_logger,
            show_progress=config.show_progress,
        )

    def build_args(self, capabilities: ScannerCapabilities, output_file: Optional[str] = None) -> List[str]:
        args = ["scan"]
        if capabilities.supports_format:
            args += ["--format", "json"]
        if output_file:
            args += ["--output", output_file]
        args += list(self.config.extra_args)
        return args

    def scan(self, capabilities: ScannerCapabilities, record_ids: Sequence[str]) -> List[ScanResult]:
        return self.scheduler.run(record_ids, lambda batch: self.scan_batch(capabilities, batch))

    def scan_batch(self, capabilities: ScannerCapabilities, record_ids: Sequence[str]) -> List[ScanResult]:
        start = time.monotonic()
        results: List[ScanResult] = []
        pending: List[str] = []
        with ArtifactBatch(self.writer) as batch:
            try:
                for record_id in record_ids:
                    record = self.transactions.get(record_id)
                    if record is None:
                        self.logger.warning("Record %s not found, skipping", record_id)
                        results.append(ScanResult(record_id=record_id, error=str(RecordNotFound(record_id))))
                        continue
                    try:
                        batch.add(record)
                    except ArtifactWriteFailed as exc:
                        self.logger.warning("Record %s: %s", record_id, exc)
                        results.append(ScanResult(record_id=record_id, error=str(exc)))
                        continue
                    pending.append(record_id)

                if not len(batch):
                    self.logger.info("No artifacts written, skipping scanner run")
                    return results

                artifact_map = batch.record_map()
                output_file = batch.reserve_output_file() if self.config.use_output_file else None
                args = self.build_args(capabilities, output_file)
                output = self.runner.run(capabilities.path, args, batch.paths, timeout=self.config.timeout)
                if output.exit_code != 0 and not output.timed_out:
                    self.logger.info("Scanner exited with code %s", output.exit_code)

                texts = [output.stdout]
                if output_file:
                    texts.append(_read_output_file(output_file))
                raw_findings = parse_output(texts, logger=self.logger)

                error = str(ProcessTimeout(self.config.timeout)) if output.timed_out else None
                if error is None and not raw_findings and output.exit_code != 0 and not output.stdout.strip():
                    # nothing parsed and nothing printed: the tool failed rather than found nothing
                    detail = output.stderr.strip().splitlines()
                    error = f"Scanner exited with code {output.exit_code}" + (f": {detail[-1]}" if detail else "")

                results.extend(
                    self.correlator.correlate(
                        raw_findings,
                        artifact_map,
                        duration=time.monotonic() - start,
                        error=error,
                        raw_output=output.combined if self.config.keep_raw_output else None,
                    )
                )
                return results
            except ProcessSpawnFailed as exc:
                self.logger.warning("%s", exc)
                return self._fail_pending(results, pending, str(exc), time.monotonic() - start)
            except Exception as exc:
                self.logger.exception("Batch scan error")
                return self._fail_pending(results, pending, str(exc) or type(exc).__name__, time.monotonic() - start)

    @staticmethod
    def _fail_pending(results: List[ScanResult], pending: List[str], error: str, duration: float) -> List[ScanResult]:
        done = {r.record_id for r in results}
        results.extend(
            ScanResult(record_id=rid, error=error, duration=duration)
            for rid in pending
            if rid not in done
        )
        return results
