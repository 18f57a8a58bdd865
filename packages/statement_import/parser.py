"""
Bank Statement Parser - entry point of the ingestion pipeline.

Decodes an uploaded statement (CSV/TSV/semicolon text or the first sheet of a
spreadsheet), locates the header row, normalizes each data row and folds the
result into a StatementUpload for human review. Nothing is persisted here.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .aggregator import DEFAULT_CURRENCY, aggregate
from .headers import locate_header
from .models import RowOutcome, StatementUpload
from .normalizer import normalize_rows
from .tabular import decode_table

logger = logging.getLogger(__name__)


class BankStatementParser:
    """
    Parses one bank statement export.

    Parsing is pure and synchronous: the whole file is held in memory, there
    is no shared state, and parsing the same bytes twice gives equal results.
    """

    def __init__(
        self,
        file_path: Optional[str] = None,
        file_content: Optional[bytes] = None,
        filename: Optional[str] = None,
        password: Optional[str] = None,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        """
        Initialize parser.

        Args:
            file_path: Path to the file (optional if file_content provided)
            file_content: File content as bytes (optional if file_path provided)
            filename: Original upload name; selects spreadsheet vs. text decoding
            password: Password for encrypted workbooks
            default_currency: Currency used when the statement has none
        """
        if not file_path and file_content is None:
            raise ValueError("Either file_path or file_content must be provided")

        self.file_path = file_path
        self.file_content = file_content
        self.filename = filename or (Path(file_path).name if file_path else "")
        self.password = password
        self.default_currency = default_currency

    def _read_bytes(self) -> bytes:
        if self.file_content is not None:
            return self.file_content
        with open(self.file_path, "rb") as f:
            return f.read()

    def parse_rows(self) -> List[RowOutcome]:
        """Decode and normalize, returning one outcome per data row."""
        table = decode_table(self._read_bytes(), self.filename, password=self.password)
        logger.info(f"Read {len(table.rows)} rows from {self.filename}")

        header_index, mapping = locate_header(table.rows)
        logger.info(f"Header found at row {header_index}")

        return normalize_rows(table.rows, header_index, mapping)

    def parse(self, uploaded_at: Optional[datetime] = None) -> StatementUpload:
        """
        Parse the statement.

        Raises:
            FileFormatError: the file is empty or cannot be decoded
            ColumnNotFoundError: date, description or amount columns are missing

        Returns:
            StatementUpload with transactions, totals, currency, account and
            date range. Rows with unparseable dates are listed in ``dropped``.
        """
        outcomes = self.parse_rows()
        upload = aggregate(
            self.filename,
            outcomes,
            uploaded_at=uploaded_at,
            default_currency=self.default_currency,
        )
        logger.info(
            f"Parsed {len(upload.transactions)} transactions "
            f"({len(upload.dropped)} rows dropped) from {self.filename}"
        )
        return upload


def parse_bank_statement(
    file_content: bytes,
    filename: str,
    password: Optional[str] = None,
    default_currency: str = DEFAULT_CURRENCY,
    uploaded_at: Optional[datetime] = None,
) -> StatementUpload:
    """Convenience function to parse an uploaded bank statement."""
    parser = BankStatementParser(
        file_content=file_content,
        filename=filename,
        password=password,
        default_currency=default_currency,
    )
    return parser.parse(uploaded_at=uploaded_at)
