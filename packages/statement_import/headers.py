"""Header row detection and column-role resolution.

Bank exports label their columns inconsistently (Danish and English, with or
without qualifiers such as "Beløb i DKK"). Roles are resolved by normalized
substring containment in either direction against a fixed keyword table.
"""

import logging
import re
import unicodedata
from types import MappingProxyType
from typing import FrozenSet, List, Mapping, Optional, Sequence, Tuple

from .errors import ColumnNotFoundError
from .models import ColumnMapping, ColumnRole

logger = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 5

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_header(text: str) -> str:
    """Lowercase, fold diacritics, strip punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", str(text).lower())
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _PUNCTUATION.sub("", folded)
    return _WHITESPACE.sub(" ", stripped).strip()


def _keywords(*words: str) -> FrozenSet[str]:
    return frozenset(normalize_header(w) for w in words)


COLUMN_KEYWORDS: Mapping[ColumnRole, FrozenSet[str]] = MappingProxyType(
    {
        ColumnRole.DATE: _keywords(
            "date", "dato", "transaction date", "transaktionsdato", "bogføringsdato"
        ),
        ColumnRole.VALUE_DATE: _keywords("value date", "valørdato", "valuta"),
        ColumnRole.DESCRIPTION: _keywords(
            "description", "tekst", "beskrivelse", "text", "note", "notat", "details"
        ),
        ColumnRole.AMOUNT: _keywords("amount", "beløb"),
        ColumnRole.DEBIT: _keywords("debit", "udgift", "udbetaling", "withdrawal"),
        ColumnRole.CREDIT: _keywords("credit", "indtægt", "indbetaling", "deposit"),
        ColumnRole.BALANCE: _keywords("balance", "saldo"),
        ColumnRole.REFERENCE: _keywords("reference", "ref"),
        ColumnRole.COUNTERPARTY: _keywords("counterparty", "modpart", "name", "navn"),
        ColumnRole.ACCOUNT: _keywords("account", "konto", "kontonummer"),
        ColumnRole.CURRENCY: _keywords("currency", "valuta"),
    }
)

# Roles whose presence marks a row as the header row
HEADER_SIGNAL_ROLES: Tuple[ColumnRole, ...] = (
    ColumnRole.DATE,
    ColumnRole.DESCRIPTION,
    ColumnRole.DEBIT,
    ColumnRole.CREDIT,
    ColumnRole.AMOUNT,
)


def _matches(normalized: str, keywords: FrozenSet[str]) -> bool:
    # An empty header cell would be "contained by" every keyword
    if not normalized:
        return False
    return any(kw in normalized or normalized in kw for kw in keywords)


def resolve(role: ColumnRole, header_cells: Sequence[str]) -> Optional[int]:
    """Index of the left-most header cell matching ``role``, else ``None``."""
    keywords = COLUMN_KEYWORDS[role]
    for index, cell in enumerate(header_cells):
        if _matches(normalize_header(cell), keywords):
            return index
    return None


def looks_like_header(cells: Sequence[str]) -> bool:
    normalized = [normalize_header(c) for c in cells]
    return any(
        _matches(cell, COLUMN_KEYWORDS[role])
        for cell in normalized
        for role in HEADER_SIGNAL_ROLES
    )


def find_header_row(rows: List[List[str]]) -> int:
    """First of the leading rows that looks like a header; row 0 otherwise."""
    for i, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if looks_like_header(row):
            return i
    return 0


def build_mapping(header_cells: Sequence[str]) -> ColumnMapping:
    """Resolve every role against the header row and check mandatory ones.

    Raises ``ColumnNotFoundError`` when the date or description role is
    missing, or when none of amount/debit/credit could be resolved.
    """
    mapping = ColumnMapping({role: resolve(role, header_cells) for role in ColumnRole})

    missing = []
    if not mapping.has(ColumnRole.DATE):
        missing.append(ColumnRole.DATE.value)
    if not mapping.has(ColumnRole.DESCRIPTION):
        missing.append(ColumnRole.DESCRIPTION.value)
    if not any(
        mapping.has(role)
        for role in (ColumnRole.AMOUNT, ColumnRole.DEBIT, ColumnRole.CREDIT)
    ):
        missing.append("amount/debit/credit")
    if missing:
        raise ColumnNotFoundError(missing)
    return mapping


def locate_header(rows: List[List[str]]) -> Tuple[int, ColumnMapping]:
    """Return the header row index and its resolved column mapping."""
    header_index = find_header_row(rows)
    mapping = build_mapping(rows[header_index])
    logger.debug(
        "Header row %d resolved to %s",
        header_index,
        {role.value: idx for role, idx in mapping.indices.items() if idx is not None},
    )
    return header_index, mapping
