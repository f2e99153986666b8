from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .config import DEFAULT_LOGGER_NAME
from .models import RawFinding
from ..parsers.json_stream import JSONStreamParser
from ..parsers.pretty import PrettyParser


def parse_output(texts: Iterable[Optional[str]], *, logger: Optional[logging.Logger] = None) -> List[RawFinding]:
    """Turn raw scanner output into RawFindings.

    Structured parsing always runs first. The pretty parser is only consulted
    when that produced nothing and the text carries pretty-report markers;
    the two modes never mix for one batch.
    """
    base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
    log = base_logger.getChild("output")
    text = "\n".join(t for t in texts if t)
    if not text.strip():
        return []

    structured = JSONStreamParser()
    findings = structured.parse(text) if structured.looks_like(text) else []
    if findings:
        log.info("Parsed %d finding(s) from structured output", len(findings))
        return findings

    pretty = PrettyParser()
    if pretty.looks_like(text):
        findings = pretty.parse(text)
        log.info("Parsed %d finding(s) from pretty output", len(findings))
    return findings
