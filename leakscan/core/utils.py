from __future__ import annotations
import io
import re
import uuid
import chardet  # type: ignore
from typing import Iterator, Optional

ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def decode_bytes(data: Optional[bytes]) -> str:
    """Decode captured HTTP bytes to text.

    UTF-8 is tried first since most traffic is UTF-8 or ASCII; otherwise the
    chardet guess is used, and as a last resort UTF-8 with replacement chars.
    A secret surrounded by a few mangled bytes is still a secret.
    """
    if not data:
        return ""
    try:
        return data.decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        pass
    enc = chardet.detect(data).get("encoding")
    if enc:
        try:
            return data.decode(enc, errors="strict")
        except (LookupError, UnicodeDecodeError):
            pass
    return data.decode("utf-8", errors="replace")


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def iter_lines(text: str) -> Iterator[str]:
    buf = io.StringIO(text)
    for line in buf:
        yield line.rstrip("\r\n")


def new_finding_id() -> str:
    # uuid4 draws from os.urandom
    return uuid.uuid4().hex
