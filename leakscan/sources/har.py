from __future__ import annotations
import base64
import binascii
import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urlsplit

from .base import RecordSource
from ..core.models import TransactionRecord

CRLF = b"\r\n"


def _header_block(headers: Any) -> bytes:
    out: List[bytes] = []
    for h in headers or []:
        if isinstance(h, dict) and "name" in h:
            out.append(f"{h['name']}: {h.get('value', '')}".encode("utf-8"))
    return CRLF.join(out)


def _body(text: Any, encoding: Any) -> bytes:
    if not isinstance(text, str) or not text:
        return b""
    if encoding == "base64":
        try:
            return base64.b64decode(text)
        except (binascii.Error, ValueError):
            return text.encode("utf-8")
    return text.encode("utf-8")


def _raw_request(req: Dict[str, Any]) -> bytes:
    parts = urlsplit(req.get("url", ""))
    target = parts.path or "/"
    if parts.query:
        target += f"?{parts.query}"
    start = f"{req.get('method', 'GET')} {target} {req.get('httpVersion') or 'HTTP/1.1'}".encode("utf-8")
    post = req.get("postData") or {}
    body = _body(post.get("text"), post.get("encoding"))
    return start + CRLF + _header_block(req.get("headers")) + CRLF + CRLF + body


def _raw_response(resp: Optional[Dict[str, Any]]) -> Optional[bytes]:
    if not resp or not resp.get("status"):
        return None
    status = f"{resp.get('httpVersion') or 'HTTP/1.1'} {resp.get('status')} {resp.get('statusText', '')}".rstrip()
    content = resp.get("content") or {}
    body = _body(content.get("text"), content.get("encoding"))
    return status.encode("utf-8") + CRLF + _header_block(resp.get("headers")) + CRLF + CRLF + body


class HARSource(RecordSource):
    """HTTP Archive (HAR 1.2) files as exported by browsers and proxies."""

    NAME = "har"
    SUPPORTED_EXTENSIONS = ["har"]

    def load(self, path: Path) -> Iterator[TransactionRecord]:
        data = json.loads(path.read_text(encoding="utf-8"))
        entries = (data.get("log") or {}).get("entries") or []
        for idx, entry in enumerate(entries, start=1):
            req = entry.get("request")
            if not isinstance(req, dict):
                continue
            record_id = str(entry.get("_id") or idx)
            yield TransactionRecord(
                record_id=record_id,
                raw_request=_raw_request(req),
                raw_response=_raw_response(entry.get("response")),
                url=req.get("url") or "unknown",
                method=req.get("method") or "GET",
            )


HAR = HARSource
