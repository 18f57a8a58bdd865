"""Duplicate detection against an organization's ledger.

Each candidate is compared with every stored transaction, stopping at the
first match. Rules are tried in a fixed order and the first one that applies
decides the reason string:

1. both sides carry a reference: reference, date and amount must agree.
2. both sides carry an account number: date, amount, description and account
   must agree.
3. otherwise date, amount and description must agree. This is the weakest rule
   and over-matches recurring payments (same rent, same subscription) that
   happen to share a date; it is kept as-is on purpose.
4. independently of 1-3, matching reference, date and amount is a match.

The verdict is a pure function of the candidate and the stored set.
"""

import hashlib
import re
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Tuple

from .models import DuplicateVerdict, NormalizedTransaction, StoredTransaction

AMOUNT_TOLERANCE = Decimal("0.01")

REASON_REFERENCE = "reference+date+amount"
REASON_ACCOUNT = "account+date+amount+description"
REASON_WEAK = "date+amount+description (no reference/account available)"

_WHITESPACE = re.compile(r"\s+")


def _text(value: Optional[str]) -> str:
    return (value or "").strip()


def _description_key(value: Optional[str]) -> str:
    return _text(value).lower()


def _same_date(a, b) -> bool:
    return a.transaction_date == b.transaction_date


def _same_amount(a, b) -> bool:
    return abs(Decimal(a.amount) - Decimal(b.amount)) < AMOUNT_TOLERANCE


def _same_description(a, b) -> bool:
    return _description_key(a.description) == _description_key(b.description)


def _both(a, b, attr: str) -> bool:
    return bool(_text(getattr(a, attr))) and bool(_text(getattr(b, attr)))


def _same(a, b, attr: str) -> bool:
    return _text(getattr(a, attr)) == _text(getattr(b, attr))


def _reference_rule(candidate, stored) -> Optional[bool]:
    if not _both(candidate, stored, "reference"):
        return None
    return (
        _same(candidate, stored, "reference")
        and _same_date(candidate, stored)
        and _same_amount(candidate, stored)
    )


def _account_rule(candidate, stored) -> Optional[bool]:
    if not _both(candidate, stored, "account_number"):
        return None
    return (
        _same_date(candidate, stored)
        and _same_amount(candidate, stored)
        and _same_description(candidate, stored)
        and _same(candidate, stored, "account_number")
    )


def _weak_rule(candidate, stored) -> Optional[bool]:
    return (
        _same_date(candidate, stored)
        and _same_amount(candidate, stored)
        and _same_description(candidate, stored)
    )


# Tie-break order: the first rule that applies (returns non-None) decides
TIERED_RULES: List[Tuple[Callable, str]] = [
    (_reference_rule, REASON_REFERENCE),
    (_account_rule, REASON_ACCOUNT),
    (_weak_rule, REASON_WEAK),
]

# Evaluated regardless of which tiered rule applied
ADDITIONAL_RULES: List[Tuple[Callable, str]] = [
    (_reference_rule, REASON_REFERENCE),
]


def match_reason(candidate, stored) -> Optional[str]:
    """Reason ``candidate`` duplicates ``stored``, or ``None``."""
    for rule, reason in TIERED_RULES:
        outcome = rule(candidate, stored)
        if outcome is None:
            continue
        if outcome:
            return reason
        break
    for rule, reason in ADDITIONAL_RULES:
        if rule(candidate, stored):
            return reason
    return None


def is_duplicate(
    candidate: NormalizedTransaction, existing: Sequence[StoredTransaction]
) -> DuplicateVerdict:
    for stored in existing:
        reason = match_reason(candidate, stored)
        if reason:
            return DuplicateVerdict(
                is_duplicate=True,
                match_reason=reason,
                existing_transaction_id=getattr(stored, "id", None),
            )
    return DuplicateVerdict(is_duplicate=False)


def check_duplicates(
    candidates: Sequence[NormalizedTransaction],
    existing: Sequence[StoredTransaction],
) -> List[DuplicateVerdict]:
    """One verdict per candidate, in candidate order."""
    return [is_duplicate(candidate, existing) for candidate in candidates]


def fingerprint(tx) -> str:
    """Stable identity of a statement line, used by the ledger's unique key.

    SHA256(date|amount(2dp)|description|reference|account) with the
    description lowercased and whitespace collapsed.
    """
    description = _WHITESPACE.sub(" ", _description_key(tx.description))
    parts = [
        tx.transaction_date.isoformat(),
        f"{Decimal(tx.amount):.2f}",
        description,
        _text(tx.reference),
        _text(tx.account_number),
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
