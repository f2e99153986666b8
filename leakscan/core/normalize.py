from __future__ import annotations

import time
from typing import Optional

from .models import Finding, FindingDetail, RawFinding, Rule
from .utils import new_finding_id

MASK_CHAR = "\u2588"
MASK_MIN_LENGTH = 8
MASK_MAX_VISIBLE = 4


def normalize_confidence(value: Optional[str]) -> str:
    lower = (value or "").lower()
    if lower == "high":
        return "high"
    if lower == "low":
        return "low"
    return "medium"


def mask_secret(value: str) -> str:
    if not value or len(value) <= MASK_MIN_LENGTH:
        return value
    visible = min(MASK_MAX_VISIBLE, len(value) // 4)
    return value[:visible] + MASK_CHAR * (len(value) - visible * 2) + value[-visible:]


def normalize_finding(
    raw: RawFinding,
    record_id: str,
    url: str,
    method: str,
    timestamp: Optional[float] = None,
) -> Finding:
    return Finding(
        id=new_finding_id(),
        record_id=record_id,
        url=url,
        method=method,
        timestamp=time.time() if timestamp is None else timestamp,
        rule=Rule(
            id=raw.rule_id,
            name=raw.rule_name,
            confidence=normalize_confidence(raw.confidence),
        ),
        finding=FindingDetail(
            snippet=mask_secret(raw.snippet),
            raw_snippet=raw.snippet,
            path=raw.path,
            fingerprint=raw.fingerprint,
        ),
        validation=raw.validation,
    )
