from __future__ import annotations


class LeakscanError(Exception):
    """Base class for pipeline failures.

    The string form of every subclass is what ends up in ``ScanResult.error``,
    so messages are kept short and human readable.
    """


class RecordNotFound(LeakscanError):
    def __init__(self, record_id: str) -> None:
        super().__init__("Request not found")
        self.record_id = record_id


class ArtifactWriteFailed(LeakscanError):
    def __init__(self, record_id: str, reason: str) -> None:
        super().__init__(f"Artifact write failed: {reason}")
        self.record_id = record_id


class ProcessSpawnFailed(LeakscanError):
    def __init__(self, executable: str, reason: str) -> None:
        super().__init__(f"Failed to start scanner {executable}: {reason}")
        self.executable = executable


class ProcessTimeout(LeakscanError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Scanner timed out after {timeout:g}s")
        self.timeout = timeout


class ParseFailure(LeakscanError):
    def __init__(self, offset: int, reason: str) -> None:
        super().__init__(f"Unparseable document at offset {offset}: {reason}")
        self.offset = offset


class BinaryUnavailable(LeakscanError):
    def __init__(self, name: str = "kingfisher") -> None:
        super().__init__(f"{name} binary not found and could not be installed")
        self.name = name


class StoreNotInitialized(LeakscanError):
    def __init__(self) -> None:
        super().__init__("Findings store not initialized")
