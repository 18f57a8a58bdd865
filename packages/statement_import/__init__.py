"""
Statement Import Engine

Bank statement parsing, normalization, duplicate detection and commit.
"""

__version__ = "0.1.0"

from .committer import commit_import
from .duplicates import check_duplicates, fingerprint, is_duplicate
from .errors import (
    ColumnNotFoundError,
    FileFormatError,
    PersistenceError,
    RowDateError,
    RowValidationWarning,
    StatementImportError,
    UniqueViolation,
)
from .ledger import ActivityLog, InMemoryLedger, Ledger, OrganizationLocks
from .models import (
    ColumnMapping,
    ColumnRole,
    DuplicateVerdict,
    ImportResult,
    NormalizedTransaction,
    StatementUpload,
    StoredTransaction,
)
from .parser import BankStatementParser, parse_bank_statement

__all__ = [
    "BankStatementParser",
    "parse_bank_statement",
    "check_duplicates",
    "is_duplicate",
    "fingerprint",
    "commit_import",
    "ActivityLog",
    "InMemoryLedger",
    "Ledger",
    "OrganizationLocks",
    "ColumnMapping",
    "ColumnRole",
    "DuplicateVerdict",
    "ImportResult",
    "NormalizedTransaction",
    "StatementUpload",
    "StoredTransaction",
    "ColumnNotFoundError",
    "FileFormatError",
    "PersistenceError",
    "RowDateError",
    "RowValidationWarning",
    "StatementImportError",
    "UniqueViolation",
]
