from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import List, Optional, Sequence

from .config import DEFAULT_LOGGER_NAME

DEFAULT_BINARY_NAME = "kingfisher"
INSTALL_TIMEOUT_SECONDS = 300.0


class BinaryLocator:
    """Resolves the scanner executable. ``ensure`` may also install it."""

    def locate(self) -> Optional[str]:
        raise NotImplementedError("locate must be implemented in subclasses")

    def ensure(self) -> Optional[str]:
        return self.locate()

    def install(self) -> Optional[str]:
        """Install or upgrade the scanner, then locate it."""
        return self.ensure()


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


class PathBinaryLocator(BinaryLocator):
    """Finds the scanner on disk: explicit path, then PATH, then ~/.local/bin.

    ``install_command`` is an argument vector run by ``ensure`` when nothing
    is found; it is never passed through a shell.
    """

    def __init__(
        self,
        name: str = DEFAULT_BINARY_NAME,
        explicit_path: Optional[str] = None,
        install_command: Optional[Sequence[str]] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.name = name
        self.explicit_path = explicit_path
        self.install_command: List[str] = list(install_command or [])
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild("locator")
        self.last_install_output = ""

    def candidates(self) -> List[str]:
        paths: List[str] = []
        found = shutil.which(self.name)
        if found:
            paths.append(found)
        paths.append(os.path.expanduser(os.path.join("~", ".local", "bin", self.name)))
        return paths

    def locate(self) -> Optional[str]:
        if self.explicit_path:
            # an explicit path is authoritative; do not silently pick another binary
            path = os.path.expanduser(self.explicit_path)
            return path if _is_executable(path) else None
        for path in self.candidates():
            if _is_executable(path):
                return path
        return None

    def ensure(self) -> Optional[str]:
        existing = self.locate()
        if existing:
            return existing
        return self.install()

    def install(self) -> Optional[str]:
        if not self.install_command:
            self.logger.warning("No installer configured for %s", self.name)
            return self.locate()

        self.logger.info("Running installer for %s", self.name)
        try:
            proc = subprocess.run(
                self.install_command,
                capture_output=True,
                text=True,
                timeout=INSTALL_TIMEOUT_SECONDS,
            )
            self.last_install_output = proc.stdout + (f"\nSTDERR:\n{proc.stderr}" if proc.stderr else "")
            if proc.returncode != 0:
                self.logger.warning("Installer exited with code %s", proc.returncode)
        except (OSError, subprocess.TimeoutExpired) as exc:
            self.last_install_output = f"Installation failed: {exc}"
            self.logger.warning("Installer failed: %s", exc)
            return None
        return self.locate()
