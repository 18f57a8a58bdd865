"""Statement-level aggregation over normalized rows."""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import (
    Accepted,
    DateRange,
    Dropped,
    NormalizedTransaction,
    RowOutcome,
    StatementUpload,
    StoredTransaction,
)

DEFAULT_CURRENCY = "DKK"
ZERO = Decimal("0")


def _first_non_empty(values: Iterable[Optional[str]]) -> Optional[str]:
    return next((v for v in values if v), None)


def total_credits(transactions: Sequence[NormalizedTransaction]) -> Decimal:
    return sum((tx.amount for tx in transactions if tx.amount >= 0), ZERO)


def total_debits(transactions: Sequence[NormalizedTransaction]) -> Decimal:
    return sum((-tx.amount for tx in transactions if tx.amount < 0), ZERO)


def date_range(
    transactions: Sequence[NormalizedTransaction], today: Optional[date] = None
) -> DateRange:
    """Inclusive min/max transaction date; today's date for an empty statement."""
    if not transactions:
        today = today or date.today()
        return DateRange(start=today, end=today)
    dates = [tx.transaction_date for tx in transactions]
    return DateRange(start=min(dates), end=max(dates))


def aggregate(
    filename: str,
    outcomes: Sequence[RowOutcome],
    uploaded_at: Optional[datetime] = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> StatementUpload:
    """Fold row outcomes into a ``StatementUpload``.

    Dropped rows never reach the totals. Currency and account number are the
    first non-empty values in row order; rows without a currency of their own
    take the statement currency.
    """
    accepted = [o.transaction for o in outcomes if isinstance(o, Accepted)]
    dropped = tuple(o for o in outcomes if isinstance(o, Dropped))

    currency = _first_non_empty(tx.currency for tx in accepted) or default_currency
    account_number = _first_non_empty(tx.account_number for tx in accepted)
    transactions = tuple(
        tx if tx.currency else replace(tx, currency=currency) for tx in accepted
    )

    return StatementUpload(
        filename=filename,
        uploaded_at=uploaded_at or datetime.now(timezone.utc),
        transactions=transactions,
        total_debits=total_debits(transactions),
        total_credits=total_credits(transactions),
        currency=currency,
        account_number=account_number,
        date_range=date_range(transactions),
        dropped=dropped,
    )


def summarize_import_history(
    records: Iterable[StoredTransaction], limit: int = 20
) -> List[Dict[str, Any]]:
    """Group committed rows into import batches, newest first.

    A batch is approximated by (upload day, account number, currency) since the
    ledger does not store an upload id.
    """
    groups: Dict[tuple, List[StoredTransaction]] = {}
    for record in records:
        if record.created_at is None:
            continue
        key = (record.created_at.date(), record.account_number, record.currency)
        groups.setdefault(key, []).append(record)

    batches = sorted(
        groups.items(), key=lambda item: max(r.created_at for r in item[1]), reverse=True
    )

    history = []
    for position, ((day, account, currency), rows) in enumerate(batches[:limit], start=1):
        label = day.strftime("%d-%m-%Y")
        history.append(
            {
                "id": position,
                "filename": (
                    f"Bank Statement - {account} ({label})"
                    if account
                    else f"Bank Statement Import - {label}"
                ),
                "uploaded_at": max(r.created_at for r in rows).isoformat(),
                "transaction_count": len(rows),
                "total_credits": float(total_credits(rows)),
                "total_debits": float(total_debits(rows)),
                "currency": currency or DEFAULT_CURRENCY,
                "date_range_start": min(r.transaction_date for r in rows).isoformat(),
                "date_range_end": max(r.transaction_date for r in rows).isoformat(),
            }
        )
    return history
