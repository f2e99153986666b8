from __future__ import annotations

import itertools
import logging
import os
import re
import secrets
from pathlib import Path
from typing import Dict, List, Optional

from .config import DEFAULT_LOGGER_NAME
from .errors import ArtifactWriteFailed
from .models import Artifact, TransactionRecord
from .utils import decode_bytes

ARTIFACT_PREFIX = "leakscan"
_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9_.-]+")
_counter = itertools.count(1)


def build_payload(record: TransactionRecord) -> str:
    return f"{decode_bytes(record.raw_request)}\n\n{decode_bytes(record.raw_response)}"


def _unique_name(record_id: str, suffix: str) -> str:
    safe_id = _SAFE_ID_RE.sub("_", record_id)[:40] or "record"
    return f"{ARTIFACT_PREFIX}-{safe_id}-{os.getpid()}-{next(_counter)}-{secrets.token_hex(6)}{suffix}"


class ArtifactWriter:
    def __init__(self, scratch_dir: str, *, logger: Optional[logging.Logger] = None) -> None:
        self.scratch_dir = Path(scratch_dir)
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("artifacts")

    def write(self, record_id: str, payload: str) -> str:
        """Write ``payload`` to a fresh file and return its path.

        Mode ``x`` fails instead of overwriting, so two live artifacts can
        never share a path.
        """
        path = self.scratch_dir / _unique_name(record_id, ".txt")
        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8") as f:
                f.write(payload)
        except OSError as exc:
            raise ArtifactWriteFailed(record_id, str(exc)) from exc
        return str(path)

    def reserve(self, suffix: str = ".json") -> str:
        """Return an unused path for the scanner's own output file."""
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        return str(self.scratch_dir / _unique_name("output", suffix))

    def delete(self, path: str) -> bool:
        try:
            os.unlink(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            self.logger.warning("Unable to delete artifact %s: %s", path, exc)
            return False


class ArtifactBatch:
    """Owns every file written for one batch and removes them on exit.

    Use as a context manager; cleanup runs whether the body returns, raises,
    or the scanner timed out.
    """

    def __init__(self, writer: ArtifactWriter) -> None:
        self.writer = writer
        self._artifacts: Dict[str, Artifact] = {}
        self._extra_paths: List[str] = []

    def __enter__(self) -> "ArtifactBatch":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def add(self, record: TransactionRecord) -> Artifact:
        path = self.writer.write(record.record_id, build_payload(record))
        artifact = Artifact(path=path, record_id=record.record_id)
        self._artifacts[path] = artifact
        return artifact

    def reserve_output_file(self) -> str:
        path = self.writer.reserve(".json")
        self._extra_paths.append(path)
        return path

    @property
    def artifacts(self) -> List[Artifact]:
        return list(self._artifacts.values())

    @property
    def paths(self) -> List[str]:
        return list(self._artifacts)

    def record_map(self) -> Dict[str, str]:
        return {path: a.record_id for path, a in self._artifacts.items()}

    def __len__(self) -> int:
        return len(self._artifacts)

    def cleanup(self) -> int:
        removed = 0
        for path in list(self._artifacts) + self._extra_paths:
            if self.writer.delete(path):
                removed += 1
        if self._artifacts:
            self.writer.logger.info("Cleaned up %d artifact file(s)", removed)
        self._artifacts.clear()
        self._extra_paths.clear()
        return removed
