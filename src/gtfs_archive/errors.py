"""Exception hierarchy for the archiver."""

from __future__ import annotations


class ArchiveError(Exception):
    """Base exception for all archiver errors."""


class ConfigError(ArchiveError):
    """Missing or invalid configuration file."""


class ArchiveDiscoveryError(ArchiveError):
    """The month range to archive could not be determined."""


class ArchiveIOError(ArchiveError):
    """A file or database could not be opened, written, or renamed."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class RecordCodecError(ArchiveError):
    """Malformed row data while scanning the store or reading/writing Parquet."""


class ArchiveInvariantError(ArchiveError):
    """Row counts disagree between what was expected and what was written.

    Signals a defect or corrupt input, never a retryable condition.
    """

    def __init__(self, message: str, *, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(message)
