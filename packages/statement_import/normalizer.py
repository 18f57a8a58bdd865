"""Row normalization: dates, signed amounts, balances and row validation."""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from .errors import RowDateError, RowValidationWarning
from .models import (
    Accepted,
    ColumnMapping,
    ColumnRole,
    Dropped,
    NormalizedTransaction,
    RowOutcome,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "maj": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "okt": 10,
    "nov": 11,
    "dec": 12,
}

# Tried in order; the first pattern that yields a real calendar date wins
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:$|[T\s])")
_DAY_MONTH_NAME_YEAR = re.compile(r"^(\d{1,2})[-/]([a-z]{3})[-/](\d{4}|\d{2})(?!\d)", re.I)
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})(?!\d)")
_YEAR_MONTH_DAY = re.compile(r"^(\d{4})[-/](\d{2})[-/](\d{2})")

_CR_DR_SUFFIX = re.compile(r"\s*(?:CR|DR)\s*$", re.I)
_NOT_NUMERIC = re.compile(r"[^\d,.\-\s]")
_PLAIN_NUMBER = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)$")


def _two_digit_year(year: str) -> int:
    value = int(year)
    if len(year) == 2:
        # 00-30 -> 2000-2030, 31-99 -> 1931-1999
        return 2000 + value if value <= 30 else 1900 + value
    return value


def _iso(match) -> date:
    year, month, day = match.groups()
    return date(int(year), int(month), int(day))


def _day_month_name_year(match) -> date:
    day, month_name, year = match.groups()
    month = MONTHS.get(month_name.lower())
    if month is None:
        raise ValueError(f"unknown month {month_name!r}")
    return date(_two_digit_year(year), month, int(day))


def _day_month_year(match) -> date:
    day, month, year = match.groups()
    return date(int(year), int(month), int(day))


DATE_PATTERNS = [
    (_ISO_DATE, _iso),
    (_DAY_MONTH_NAME_YEAR, _day_month_name_year),
    (_DAY_MONTH_YEAR, _day_month_year),
    (_YEAR_MONTH_DAY, _iso),
]


def parse_date(value: str) -> date:
    """Parse a statement date, raising ``RowDateError`` when nothing matches."""
    text = (value or "").strip()
    for pattern, build in DATE_PATTERNS:
        match = pattern.match(text)
        if not match:
            continue
        try:
            return build(match)
        except ValueError:
            continue
    raise RowDateError(text)


def parse_optional_date(value: str) -> Optional[date]:
    if not value or not value.strip():
        return None
    try:
        return parse_date(value)
    except RowDateError:
        return None


def parse_amount(value: str) -> Decimal:
    """Parse a monetary amount; anything unparseable resolves to zero.

    Decision table for separators:
    - both ``,`` and ``.``: the right-most one is the decimal point and the
      other is a thousands separator (``1.234,56`` and ``1,234.56``).
    - only ``,``: the last comma is the decimal point (``1234,56``).
    - only ``.`` repeated: thousands separators (``1.234.567``).
    - only one ``.``: the decimal point.
    """
    if value is None:
        return ZERO
    text = _CR_DR_SUFFIX.sub("", str(value).strip())
    text = _NOT_NUMERIC.sub("", text)
    text = re.sub(r"\s+", "", text)
    if not text:
        return ZERO

    has_comma = "," in text
    has_dot = "." in text
    if has_comma and has_dot:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "")
            head, _, tail = text.rpartition(",")
            text = head.replace(",", "") + "." + tail
        else:
            text = text.replace(",", "")
    elif has_comma:
        head, _, tail = text.rpartition(",")
        text = head.replace(",", "") + "." + tail
    elif text.count(".") > 1:
        text = text.replace(".", "")

    if not _PLAIN_NUMBER.match(text):
        return ZERO
    try:
        return Decimal(text)
    except InvalidOperation:
        return ZERO


def resolve_amount(row: List[str], mapping: ColumnMapping) -> Decimal:
    """Signed amount: a positive debit wins, then a positive credit, then amount."""
    if mapping.has(ColumnRole.DEBIT):
        debit = parse_amount(mapping.cell(row, ColumnRole.DEBIT))
        if debit > 0:
            return -debit
    if mapping.has(ColumnRole.CREDIT):
        credit = parse_amount(mapping.cell(row, ColumnRole.CREDIT))
        if credit > 0:
            return credit
    if mapping.has(ColumnRole.AMOUNT):
        return parse_amount(mapping.cell(row, ColumnRole.AMOUNT))
    return ZERO


def normalize_row(row: List[str], mapping: ColumnMapping) -> NormalizedTransaction:
    """Normalize one data row. Raises ``RowDateError`` for a bad date.

    ``currency`` is left empty when the row has none; the aggregator fills in
    the statement currency.
    """
    transaction_date = parse_date(mapping.cell(row, ColumnRole.DATE))
    description = mapping.cell(row, ColumnRole.DESCRIPTION)
    amount = resolve_amount(row, mapping)

    balance_text = mapping.cell(row, ColumnRole.BALANCE)
    balance = parse_amount(balance_text) if balance_text else None

    warnings = []
    if not description:
        warnings.append(RowValidationWarning.MISSING_DESCRIPTION.value)
    if amount == 0:
        warnings.append(RowValidationWarning.ZERO_AMOUNT.value)

    return NormalizedTransaction(
        transaction_date=transaction_date,
        value_date=parse_optional_date(mapping.cell(row, ColumnRole.VALUE_DATE)),
        description=description,
        amount=amount,
        balance=balance,
        reference=mapping.cell(row, ColumnRole.REFERENCE) or None,
        counterparty=mapping.cell(row, ColumnRole.COUNTERPARTY) or None,
        account_number=mapping.cell(row, ColumnRole.ACCOUNT) or None,
        currency=mapping.cell(row, ColumnRole.CURRENCY).upper(),
        warnings=tuple(warnings),
    )


def normalize_rows(
    rows: List[List[str]],
    header_index: int,
    mapping: ColumnMapping,
) -> List[RowOutcome]:
    """Normalize every row below the header, preserving order."""
    outcomes: List[RowOutcome] = []
    for row_number in range(header_index + 1, len(rows)):
        row = rows[row_number]
        if not any(cell.strip() for cell in row):
            continue
        try:
            tx = normalize_row(row, mapping)
        except RowDateError as e:
            logger.debug("Dropping row %d: %s", row_number, e)
            outcomes.append(Dropped(row_number=row_number, reason=str(e)))
            continue
        outcomes.append(Accepted(row_number=row_number, transaction=tx))
    return outcomes
