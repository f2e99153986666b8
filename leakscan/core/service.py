from __future__ import annotations

import json
import logging
from typing import List, Optional, Sequence, Tuple

from .config import DEFAULT_LOGGER_NAME, ScanConfig
from .errors import BinaryUnavailable, StoreNotInitialized
from .locator import BinaryLocator
from .models import Finding, ScanResult, Stats
from .runner import ScanProcessRunner
from .scanner import BatchScanner, ScannerCapabilities, ScannerProbe
from .store import FindingsStore
from .transactions import TransactionStore


class ScanContext:
    """Everything one scanning session needs, built once and passed around.

    The public methods never raise: failures are logged and turned into
    error results or empty defaults, so a host UI can call them blindly.
    """

    def __init__(
        self,
        transactions: TransactionStore,
        locator: BinaryLocator,
        config: Optional[ScanConfig] = None,
        *,
        store: Optional[FindingsStore] = None,
        runner: Optional[ScanProcessRunner] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or ScanConfig()
        self.transactions = transactions
        self.locator = locator
        self.store = store if store is not None else FindingsStore()
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("context")
        self.runner = runner or ScanProcessRunner(logger=base_logger)
        self.probe = ScannerProbe(self.runner, self.config.probe_timeout, logger=base_logger)
        self.scanner = BatchScanner(self.config, transactions, runner=self.runner, logger=base_logger)

    def _require_store(self) -> FindingsStore:
        if self.store is None:
            raise StoreNotInitialized()
        return self.store

    def _capabilities(self, install: bool = True) -> Optional[ScannerCapabilities]:
        binary = self.locator.ensure() if install else self.locator.locate()
        if not binary:
            return None
        return self.probe.get(binary)

    def scan(self, record_ids: Sequence[str]) -> List[ScanResult]:
        ids = [str(rid) for rid in record_ids or []]
        if not ids:
            return []
        self.logger.info("Starting scan of %d record(s)", len(ids))
        try:
            capabilities = self._capabilities(install=True)
            if capabilities is None:
                error = str(BinaryUnavailable(getattr(self.locator, "name", "kingfisher")))
                self.logger.error("Scanning aborted: %s", error)
                results = [ScanResult(record_id=rid, error=error) for rid in dict.fromkeys(ids)]
            else:
                results = self.scanner.scan(capabilities, ids)
        except Exception as exc:
            self.logger.exception("Scan failed")
            results = [ScanResult(record_id=rid, error=str(exc) or type(exc).__name__) for rid in dict.fromkeys(ids)]

        try:
            store = self._require_store()
            store.increment_scanned(len(results))
            added = store.add_many(f for r in results for f in r.findings)
            self.logger.info("Scan finished: %d result(s), %d finding(s) stored", len(results), added)
        except StoreNotInitialized as exc:
            self.logger.error("%s", exc)
        return results

    def get_findings(self) -> List[Finding]:
        try:
            return self._require_store().get_all()
        except StoreNotInitialized as exc:
            self.logger.error("%s", exc)
            return []

    def get_findings_for_record(self, record_id: str) -> List[Finding]:
        try:
            return self._require_store().get_by_record_id(record_id)
        except StoreNotInitialized as exc:
            self.logger.error("%s", exc)
            return []

    def remove_finding(self, finding_id: str) -> bool:
        try:
            return self._require_store().remove(finding_id)
        except StoreNotInitialized as exc:
            self.logger.error("%s", exc)
            return False

    def clear_findings(self) -> None:
        try:
            removed = self._require_store().clear()
            self.logger.info("Cleared %d finding(s)", removed)
        except StoreNotInitialized as exc:
            self.logger.error("%s", exc)

    def export_findings(self, include_unmasked: bool = False) -> str:
        findings = self.get_findings()
        self.logger.info("Exporting %d finding(s)", len(findings))
        return json.dumps([f.to_dict(include_unmasked) for f in findings], indent=2, ensure_ascii=False)

    def scanner_version(self) -> Optional[str]:
        cached = self.probe.cached()
        if cached is not None:
            return cached.version
        try:
            capabilities = self._capabilities(install=False)
        except Exception as exc:
            self.logger.warning("Version probe failed: %s", exc)
            return None
        return capabilities.version if capabilities is not None else None

    def get_stats(self) -> Stats:
        try:
            stats = self._require_store().get_stats()
        except StoreNotInitialized as exc:
            self.logger.error("%s", exc)
            return Stats()
        stats.scanner_version = self.scanner_version()
        return stats

    def install_scanner(self) -> Tuple[bool, str]:
        """Install or upgrade the scanner and drop any cached probe result."""
        self.probe.invalidate()
        try:
            binary = self.locator.install()
        except Exception as exc:
            self.logger.exception("Scanner installation failed")
            return False, f"Installation failed: {exc}"
        output = getattr(self.locator, "last_install_output", "")
        if not binary:
            return False, f"Installation failed: binary not found after install\n\n{output}".rstrip()
        version = self.probe.get(binary).version
        return True, f"Scanner available at {binary} (v{version})\n\n{output}".rstrip()
