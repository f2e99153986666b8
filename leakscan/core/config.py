from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional


DEFAULT_LOGGER_NAME = "leakscan"

# Settings
DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_PARALLEL = 2
DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 30.0
DEFAULT_EXTRA_ARGS = ["--no-update-check", "--no-ignore", "--jobs", "4"]


def configure_logging(verbose: bool = False, logger_name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Configure and return the package logger.

    Library callers that already configured ``logging`` can skip this; the
    CLI calls it once at startup. ``verbose`` lowers the level to INFO.
    """

    logger = logging.getLogger(logger_name)
    level = logging.INFO if verbose else logging.WARNING
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        )
        logger.addHandler(handler)

    return logger


@dataclass
class ScanConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    max_parallel: int = DEFAULT_MAX_PARALLEL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    scratch_dir: Optional[str] = None
    extra_args: List[str] = field(default_factory=lambda: list(DEFAULT_EXTRA_ARGS))
    use_output_file: bool = False
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    show_progress: bool = False
    keep_raw_output: bool = True

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_parallel < 1:
            raise ValueError(f"max_parallel must be >= 1, got {self.max_parallel}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.scratch_dir is None:
            self.scratch_dir = tempfile.gettempdir()
