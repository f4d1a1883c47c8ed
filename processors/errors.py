"""Error types raised while ingesting ledger files.

I/O failures are left as the builtin ``OSError``.
"""
from __future__ import annotations


class IngestError(Exception):
    """Base class for every ingestion failure."""


class RowValidationError(IngestError):
    """A line failed validation. ``kind`` names the failing rule."""

    kind = "RowValidationError"

    def __str__(self) -> str:
        return f"{self.kind}: {super().__str__()}"


class MalformedRow(RowValidationError):
    kind = "MalformedRow"


class InvalidDate(RowValidationError):
    kind = "InvalidDate"


class InvalidInteger(RowValidationError):
    kind = "InvalidInteger"


class InvalidRecordType(RowValidationError):
    kind = "InvalidRecordType"


class InvalidAmount(RowValidationError):
    kind = "InvalidAmount"


class StorageError(IngestError):
    """Transaction or connection failure against the ledger database."""


class ArchiveError(IngestError):
    """The source file could not be moved to history or deleted."""
