from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


CONFIDENCE_LEVELS = ("low", "medium", "high")


@dataclass(frozen=True)
class TransactionRecord:
    record_id: str
    raw_request: bytes
    raw_response: Optional[bytes] = None
    url: str = "unknown"
    method: str = "GET"


@dataclass(frozen=True)
class Artifact:
    path: str  # correlation key, echoed back by the scanner
    record_id: str


@dataclass
class ValidationResult:
    status: str
    response: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        if self.response is not None:
            data["response"] = self.response
        return data


@dataclass
class RawFinding:
    rule_id: str
    rule_name: str
    snippet: str
    path: str
    confidence: Optional[str] = None
    fingerprint: Optional[str] = None
    validation: Optional[ValidationResult] = None


@dataclass
class Rule:
    id: str
    name: str
    confidence: str = "medium"


@dataclass
class FindingDetail:
    snippet: str  # masked
    raw_snippet: str
    path: str
    fingerprint: Optional[str] = None


@dataclass
class Finding:
    id: str
    record_id: str
    url: str
    method: str
    timestamp: float
    rule: Rule
    finding: FindingDetail
    validation: Optional[ValidationResult] = None

    def to_dict(self, include_unmasked: bool = False) -> Dict[str, Any]:
        detail: Dict[str, Any] = {
            "snippet": self.finding.snippet,
            "path": self.finding.path,
        }
        if include_unmasked:
            detail["raw_snippet"] = self.finding.raw_snippet
        if self.finding.fingerprint is not None:
            detail["fingerprint"] = self.finding.fingerprint
        data: Dict[str, Any] = {
            "id": self.id,
            "record_id": self.record_id,
            "url": self.url,
            "method": self.method,
            "timestamp": self.timestamp,
            "rule": {
                "id": self.rule.id,
                "name": self.rule.name,
                "confidence": self.rule.confidence,
            },
            "finding": detail,
        }
        if self.validation is not None:
            data["validation"] = self.validation.to_dict()
        return data


@dataclass
class ScanResult:
    record_id: str
    findings: List[Finding] = field(default_factory=list)
    error: Optional[str] = None
    duration: float = 0.0  # seconds
    raw_output: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self, include_unmasked: bool = False, include_raw_output: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "record_id": self.record_id,
            "findings": [f.to_dict(include_unmasked) for f in self.findings],
            "duration": round(self.duration, 3),
        }
        if self.error is not None:
            data["error"] = self.error
        if include_raw_output and self.raw_output is not None:
            data["raw_output"] = self.raw_output
        return data


@dataclass
class Stats:
    total_scanned: int = 0
    total_findings: int = 0
    last_scan_time: Optional[float] = None
    scanner_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_scanned": self.total_scanned,
            "total_findings": self.total_findings,
            "last_scan_time": self.last_scan_time,
            "scanner_version": self.scanner_version,
        }
