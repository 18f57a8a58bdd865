"""Import commit: persist the reviewer's selection, row by row."""

import logging
from typing import Any, Optional, Sequence

from .duplicates import fingerprint
from .errors import PersistenceError, UniqueViolation
from .ledger import ActivityLog, Ledger
from .models import ImportResult, NormalizedTransaction

logger = logging.getLogger(__name__)


def _label(tx: NormalizedTransaction, with_amount: bool = True) -> str:
    description = tx.description or "Unknown"
    if with_amount:
        return f"{description} ({tx.transaction_date.isoformat()}, {tx.amount})"
    return f"{description} ({tx.transaction_date.isoformat()})"


def commit_import(
    ledger: Ledger,
    organization_id: Any,
    filename: Optional[str],
    transactions: Sequence[NormalizedTransaction],
    activity_log: Optional[ActivityLog] = None,
    user_id: Any = None,
) -> ImportResult:
    """Insert ``transactions`` for ``organization_id`` and report the outcome.

    Duplicate status is not re-derived here; the caller has already filtered
    with the duplicate matcher. A uniqueness violation from the ledger counts
    as a skipped duplicate and any other ``PersistenceError`` is recorded in
    ``errors``. One failing row never aborts the rest of the batch.
    """
    result = ImportResult(total=len(transactions))

    for tx in transactions:
        try:
            stored = ledger.insert_transaction(organization_id, tx, fingerprint(tx))
        except UniqueViolation:
            result.skipped_duplicates.append(_label(tx))
            continue
        except PersistenceError as e:
            logger.warning("Failed to insert transaction %s: %s", _label(tx), e)
            result.errors.append(
                f"Failed to insert transaction: {_label(tx, with_amount=False)}"
            )
            continue
        result.inserted.append(stored)

    logger.info(
        "Imported %d of %d transactions for organization %s (%d skipped, %d errors)",
        result.inserted_count,
        result.total,
        organization_id,
        result.skipped_count,
        len(result.errors),
    )

    if activity_log is not None:
        summary = {
            "description": f"Imported {result.inserted_count} bank transactions"
            + (f" from {filename}" if filename else ""),
            "inserted": result.inserted_count,
            "skipped": result.skipped_count,
            "total": result.total,
            "filename": filename,
        }
        try:
            activity_log.record_import(organization_id, user_id, summary)
        except Exception as e:
            # Audit logging must never fail an import that already happened
            logger.warning("Activity log write failed: %s", e)

    return result
