"""Tabular decoding: raw upload bytes into a grid of string cells."""

import csv
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

import msoffcrypto
import pandas as pd

from .errors import FileFormatError

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = (".xlsx", ".xlsm", ".xls")
TEXT_ENCODINGS = ["utf-8-sig", "utf-8", "cp1252", "latin-1"]

# OLE2 Compound Document magic bytes; encrypted Office files use this container
_OLE2_MAGIC = b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1"


@dataclass(frozen=True)
class DecodedTable:
    rows: List[List[str]]
    delimiter: Optional[str] = None


def is_spreadsheet(filename: str) -> bool:
    return (filename or "").lower().endswith(SPREADSHEET_EXTENSIONS)


def detect_delimiter(first_line: str) -> str:
    """Tab beats semicolon, semicolon beats comma."""
    if "\t" in first_line:
        return "\t"
    if ";" in first_line:
        return ";"
    return ","


def _decode_text(content: bytes) -> str:
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FileFormatError("Could not decode file with any known encoding")


def _unquote(text: str) -> str:
    """Strip one pair of matching surrounding quotes, single or double."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1].strip()
    return text


def _cell_to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    if value is pd.NaT:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return _unquote(str(value).strip())


def _drop_unbalanced_quotes(line: str) -> str:
    # An unterminated quote would make the reader swallow every following line
    if line.count('"') % 2:
        logger.debug("Ignoring unbalanced quotes in line: %r", line)
        return line.replace('"', "")
    return line


def _split_line(line: str, delimiter: str, width: int) -> List[str]:
    cells = [_cell_to_text(c.replace('"', "")) for c in line.split(delimiter)]
    return cells + [""] * (width - len(cells))


def _read_delimited(content: bytes) -> DecodedTable:
    text = _decode_text(content)
    lines = [line.strip() for line in text.splitlines()]
    lines = [_drop_unbalanced_quotes(line) for line in lines if line]
    if not lines:
        raise FileFormatError("File is empty")

    delimiter = detect_delimiter(lines[0])
    # Preamble rows (account info) are often narrower than the data rows
    width = max(line.count(delimiter) for line in lines) + 1
    try:
        df = pd.read_csv(
            io.StringIO("\n".join(lines)),
            sep=delimiter,
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
        )
    except (pd.errors.ParserError, csv.Error) as e:
        # Malformed quoting only costs the affected cells, never the file
        logger.warning("Quoted parse failed (%s); splitting lines on %r", e, delimiter)
        rows = [_split_line(line, delimiter, width) for line in lines]
        return DecodedTable(rows=rows, delimiter=delimiter)

    rows = [[_cell_to_text(v) for v in record] for record in df.itertuples(index=False)]
    return DecodedTable(rows=rows, delimiter=delimiter)


def _open_workbook(content: bytes, password: Optional[str]) -> io.BytesIO:
    if content[:8] != _OLE2_MAGIC:
        return io.BytesIO(content)

    # OLE2: either a legacy .xls or an encrypted OOXML workbook
    if not password:
        try:
            encrypted = msoffcrypto.OfficeFile(io.BytesIO(content)).is_encrypted()
        except Exception:
            encrypted = False
        if encrypted:
            raise FileFormatError("Password required")
        return io.BytesIO(content)

    decrypted = io.BytesIO()
    try:
        with io.BytesIO(content) as f:
            office_file = msoffcrypto.OfficeFile(f)
            office_file.load_key(password=password)
            office_file.decrypt(decrypted)
    except Exception as e:
        msg = str(e).lower()
        if "password" in msg or "decrypt" in msg or "key" in msg:
            raise FileFormatError("Invalid password")
        raise FileFormatError(f"Failed to decrypt file: {e}")
    decrypted.seek(0)
    return decrypted


def _read_spreadsheet(content: bytes, password: Optional[str]) -> DecodedTable:
    workbook = _open_workbook(content, password)
    try:
        # sheet_name=0: only the first sheet is decoded
        df = pd.read_excel(workbook, sheet_name=0, header=None, dtype=object)
    except Exception as e:
        raise FileFormatError(f"Could not read spreadsheet: {e}")

    rows = []
    for record in df.itertuples(index=False):
        cells = [_cell_to_text(v) for v in record]
        if any(cells):
            rows.append(cells)
    if not rows:
        raise FileFormatError("File is empty")
    return DecodedTable(rows=rows)


def decode_table(
    content: bytes, filename: str, password: Optional[str] = None
) -> DecodedTable:
    """Decode an upload into rows of string cells.

    The filename only selects spreadsheet vs. delimited-text decoding.
    Empty lines/rows are dropped. Raises ``FileFormatError`` if nothing is left.
    """
    if not content:
        raise FileFormatError("File is empty")

    if is_spreadsheet(filename):
        table = _read_spreadsheet(content, password)
    else:
        table = _read_delimited(content)

    logger.debug(
        "Decoded %s into %d rows (delimiter=%r)",
        filename,
        len(table.rows),
        table.delimiter,
    )
    return table
