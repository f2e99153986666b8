from __future__ import annotations
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import List, Optional

from .base import OutputParser
from ..core.config import DEFAULT_LOGGER_NAME
from ..core.models import RawFinding, ValidationResult
from ..core.utils import iter_lines, strip_ansi

# Settings
HEADER_RE = re.compile(r"^\s*(?P<head>.*?)\s*=>\s*\[(?P<rule_id>[^\]]+)\]\s*$")
FIELD_RE = re.compile(r"^\s*\|(?P<nested>__)?(?P<key>[A-Za-z][A-Za-z0-9 _-]*?)\.*\s*:\s?(?P<value>.*)$")
FINDING_LINE_RE = re.compile(r"^\s*\|\s*Finding\.*\s*:", re.MULTILINE)
ASCII_BULLETS = ("*", "-")
ICON_BULLETS = ("\u2022", "\u25cf")
VARIATION_SELECTOR = "\ufe0f"
NEGATIVE_VALIDATION = ("inactive", "invalid", "not valid", "not active")

logger = logging.getLogger(DEFAULT_LOGGER_NAME).getChild("parsers.pretty")


def _is_icon(ch: str) -> bool:
    if ch in ICON_BULLETS:
        return True
    return ord(ch) > 0x7F and unicodedata.category(ch) in ("So", "Sm", "Sk")


def has_icon(text: str) -> bool:
    return any(_is_icon(ch) for ch in text)


def _split_header(head: str) -> Optional[str]:
    """Return the rule name from ``<marker> <RULE NAME>``.

    Everything up to and including the last marker glyph is dropped, which
    also strips status prefixes printed before the icon.
    """
    cut = -1
    for idx, ch in enumerate(head):
        if _is_icon(ch):
            cut = idx
    if cut >= 0:
        name = head[cut + 1:]
    else:
        name = head.lstrip()
        if name[:1] in ASCII_BULLETS:
            name = name[1:]
    name = name.replace(VARIATION_SELECTOR, "").strip()
    return name or None


def infer_validation_status(value: str) -> str:
    lowered = value.lower()
    if any(neg in lowered for neg in NEGATIVE_VALIDATION):
        return "invalid"
    if "active" in lowered or "valid" in lowered:
        return "valid"
    return "invalid"


@dataclass
class _Pending:
    rule_id: str
    rule_name: str
    snippet: str = ""
    path: str = ""
    confidence: Optional[str] = None
    fingerprint: Optional[str] = None
    validation: Optional[ValidationResult] = None

    def complete(self) -> bool:
        return bool(self.snippet) and bool(self.path)

    def build(self) -> RawFinding:
        return RawFinding(
            rule_id=self.rule_id,
            rule_name=self.rule_name,
            snippet=self.snippet,
            path=self.path,
            confidence=self.confidence,
            fingerprint=self.fingerprint,
            validation=self.validation,
        )


class PrettyParser(OutputParser):
    """Line parser for the human readable report, e.g.::

        🔓 GITHUB PERSONAL ACCESS TOKEN => [kingfisher.github.1]
         |Finding.......: ghp_...
         |Confidence....: medium
         |Validation....: Active Credential
         |__Response....: HTTP 200
         |Path..........: /tmp/leakscan-1-....txt
    """

    NAME = "pretty"

    def looks_like(self, text: str) -> bool:
        text = strip_ansi(text)
        if FINDING_LINE_RE.search(text):
            return True
        for line in iter_lines(text):
            m = HEADER_RE.match(line)
            if m and has_icon(m.group("head")):
                return True
        return False

    def parse(self, text: str) -> List[RawFinding]:
        findings: List[RawFinding] = []
        current: Optional[_Pending] = None
        discarded = 0

        def flush() -> None:
            nonlocal discarded
            if current is None:
                return
            if current.complete():
                findings.append(current.build())
            else:
                discarded += 1

        for line in iter_lines(strip_ansi(text)):
            field_match = FIELD_RE.match(line)
            if field_match:
                if current is not None:
                    self._apply_field(current, field_match)
                continue
            header_match = HEADER_RE.match(line)
            if header_match:
                name = _split_header(header_match.group("head"))
                rule_id = header_match.group("rule_id").strip()
                if not rule_id:
                    continue
                flush()
                current = _Pending(rule_id=rule_id, rule_name=name or rule_id)

        flush()
        if discarded:
            logger.info("Discarded %d incomplete pretty-format finding(s)", discarded)
        return findings

    @staticmethod
    def _apply_field(current: _Pending, m: "re.Match[str]") -> None:
        key = m.group("key").strip().lower().replace(" ", "_")
        value = m.group("value").strip()
        if m.group("nested"):
            if current.validation is None:
                current.validation = ValidationResult(status=infer_validation_status(""))
            if key == "response":
                current.validation.response = value
            return
        if key == "finding":
            current.snippet = value
        elif key == "path":
            current.path = value
        elif key == "confidence":
            current.confidence = value or None
        elif key == "fingerprint":
            current.fingerprint = value or None
        elif key == "validation":
            status = infer_validation_status(value)
            if current.validation is None:
                current.validation = ValidationResult(status=status)
            else:
                current.validation.status = status


Pretty = PrettyParser
