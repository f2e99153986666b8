from __future__ import annotations
from typing import Any, List, Optional

from ..core.models import RawFinding, ValidationResult


class OutputParser:
    NAME = "base"

    def looks_like(self, text: str) -> bool:
        """Cheap content check deciding whether ``parse`` is worth running."""
        return True

    def parse(self, text: str) -> List[RawFinding]:
        raise NotImplementedError("parse must be implemented in subclasses")


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        text = str(value)
        return text if text else None
    return None


def coerce_validation(value: Any) -> Optional[ValidationResult]:
    if isinstance(value, dict):
        status = _opt_str(value.get("status"))
        if status is None:
            return None
        return ValidationResult(status=status, response=_opt_str(value.get("response")))
    if isinstance(value, str) and value:
        return ValidationResult(status=value)
    return None


def coerce_raw_finding(obj: Any) -> Optional[RawFinding]:
    """Validate one scanner finding object.

    Expected shape: ``{"rule": {"id", "name"}, "finding": {"snippet", "path",
    "confidence", "fingerprint", "validation"}}``. Returns None for anything
    that does not fit; callers count those as dropped.
    """
    if not isinstance(obj, dict):
        return None
    rule = obj.get("rule")
    detail = obj.get("finding")
    if not isinstance(rule, dict) or not isinstance(detail, dict):
        return None

    rule_id = _opt_str(rule.get("id"))
    snippet = detail.get("snippet")
    path = detail.get("path")
    if rule_id is None or not isinstance(snippet, str) or not snippet:
        return None
    if not isinstance(path, str) or not path:
        return None

    return RawFinding(
        rule_id=rule_id,
        rule_name=_opt_str(rule.get("name")) or rule_id,
        snippet=snippet,
        path=path,
        confidence=_opt_str(detail.get("confidence")),
        fingerprint=_opt_str(detail.get("fingerprint")),
        validation=coerce_validation(detail.get("validation")),
    )
