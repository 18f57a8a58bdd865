"""Error taxonomy for statement ingestion.

File-level errors (``FileFormatError``, ``ColumnNotFoundError``) abort a parse
before any row is produced. ``RowDateError`` is raised by the date parser and
turned into a dropped row by the normalizer; it never escapes a parse call.
``PersistenceError`` and ``UniqueViolation`` come from ledger implementations
and are absorbed per row by the committer.
"""

from enum import Enum
from typing import Iterable


class StatementImportError(Exception):
    """Base class for every error raised by the ingestion pipeline."""


class FileFormatError(StatementImportError):
    """The upload is empty or cannot be decoded into a table."""


class ColumnNotFoundError(StatementImportError):
    """A mandatory column role could not be resolved from the header row."""

    def __init__(self, missing: Iterable[str]):
        self.missing = tuple(missing)
        super().__init__(
            "Could not find required column(s): "
            + ", ".join(self.missing)
            + ". Expected headers such as Dato/Date, Tekst/Description and "
            "Beløb/Amount (or Debit/Credit)."
        )


class RowDateError(StatementImportError):
    """A row's transaction date matched none of the supported formats."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unparseable transaction date: {value!r}")


class PersistenceError(StatementImportError):
    """The ledger failed to read or write (including timeouts)."""


class UniqueViolation(PersistenceError):
    """The ledger rejected an insert because the row already exists."""


class RowValidationWarning(str, Enum):
    """Non-fatal row findings shown to the reviewer; the row is kept."""

    MISSING_DESCRIPTION = "Missing description"
    ZERO_AMOUNT = "Zero amount"

    def __str__(self) -> str:
        return self.value
