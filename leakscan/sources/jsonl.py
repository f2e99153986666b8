from __future__ import annotations
import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from .base import RecordSource
from ..core.config import DEFAULT_LOGGER_NAME
from ..core.models import TransactionRecord
from ..core.utils import iter_lines

logger = logging.getLogger(DEFAULT_LOGGER_NAME).getChild("sources.jsonl")


def _payload(obj: Dict[str, Any], key: str) -> Optional[bytes]:
    encoded = obj.get(f"{key}_b64")
    if isinstance(encoded, str):
        return base64.b64decode(encoded)
    text = obj.get(key)
    if isinstance(text, str):
        return text.encode("utf-8")
    return None


class JSONLSource(RecordSource):
    """One transaction per line::

        {"id": "1", "url": "...", "method": "GET", "request": "...", "response": "..."}

    ``request_b64`` / ``response_b64`` carry binary-safe payloads instead.
    """

    NAME = "jsonl"
    SUPPORTED_EXTENSIONS = ["jsonl", "ndjson", "json"]

    def load(self, path: Path) -> Iterator[TransactionRecord]:
        content = path.read_text(encoding="utf-8", errors="replace")
        for line_num, line in enumerate(iter_lines(content), start=1):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
                request = _payload(obj, "request")
            except (ValueError, binascii.Error, AttributeError) as exc:
                logger.warning("%s:%d: skipping malformed record (%s)", path, line_num, exc)
                continue
            if request is None or "id" not in obj:
                logger.warning("%s:%d: record needs 'id' and 'request'", path, line_num)
                continue
            try:
                response = _payload(obj, "response")
            except (ValueError, binascii.Error) as exc:
                logger.warning("%s:%d: bad response payload (%s)", path, line_num, exc)
                response = None
            yield TransactionRecord(
                record_id=str(obj["id"]),
                raw_request=request,
                raw_response=response,
                url=str(obj.get("url") or "unknown"),
                method=str(obj.get("method") or "GET"),
            )


JSONL = JSONLSource
