from __future__ import annotations
import json
import logging
import re
from typing import Any, Iterator, List, Optional

from .base import OutputParser, coerce_raw_finding
from ..core.config import DEFAULT_LOGGER_NAME
from ..core.errors import ParseFailure
from ..core.models import RawFinding

OPENER_RE = re.compile(r"[\[{]")
OPENERS = "{["
CLOSERS = "}]"

logger = logging.getLogger(DEFAULT_LOGGER_NAME).getChild("parsers.json")


def _find_document_end(text: str, start: int) -> Optional[int]:
    """Return the index just past the document opened at ``start``.

    Tracks string state (escape aware) and bracket depth; returns None if the
    document never closes.
    """
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
            if depth == 0:
                return idx + 1
    return None


def iter_documents(text: str) -> Iterator[Any]:
    """Yield every JSON document found in ``text``.

    Documents may be concatenated with whitespace or log noise in between.
    A candidate that does not decode is skipped one character at a time, so
    a truncated or interleaved fragment never hides the documents after it.
    """
    idx = 0
    while True:
        m = OPENER_RE.search(text, idx)
        if m is None:
            return
        start = m.start()
        end = _find_document_end(text, start)
        if end is None:
            logger.debug("%s", ParseFailure(start, "document never closes"))
            idx = start + 1
            continue
        try:
            doc = json.loads(text[start:end])
        except ValueError as exc:
            logger.debug("%s", ParseFailure(start, str(exc)))
            idx = start + 1
            continue
        yield doc
        idx = end


def _finding_candidates(doc: Any) -> List[Any]:
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict):
        if isinstance(doc.get("findings"), list):
            return doc["findings"]
        # JSON-lines output: one finding per document
        if "rule" in doc and "finding" in doc:
            return [doc]
    return []


class JSONStreamParser(OutputParser):
    NAME = "json"

    def looks_like(self, text: str) -> bool:
        return OPENER_RE.search(text) is not None

    def parse(self, text: str) -> List[RawFinding]:
        findings: List[RawFinding] = []
        dropped = 0
        for doc in iter_documents(text):
            for item in _finding_candidates(doc):
                raw = coerce_raw_finding(item)
                if raw is None:
                    dropped += 1
                    continue
                findings.append(raw)
        if dropped:
            logger.info("Dropped %d malformed finding object(s)", dropped)
        return findings


JSON = JSONStreamParser
