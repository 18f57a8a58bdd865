"""Supabase-backed ledger and activity log.

The ``bank_transactions`` table carries a unique index on
``(organization_id, fingerprint)``; PostgREST reports a collision with the
Postgres error code 23505, which is surfaced as ``UniqueViolation`` so the
committer can count the row as a skipped duplicate.
"""

from typing import Any, List, Mapping

import httpx
import structlog
from postgrest.exceptions import APIError
from supabase import Client

from packages.statement_import.errors import PersistenceError, UniqueViolation
from packages.statement_import.models import NormalizedTransaction, StoredTransaction

logger = structlog.get_logger()

UNIQUE_VIOLATION_CODE = "23505"


def _is_unique_violation(exc: APIError) -> bool:
    if str(getattr(exc, "code", "")) == UNIQUE_VIOLATION_CODE:
        return True
    message = (getattr(exc, "message", "") or str(exc)).lower()
    return "duplicate key" in message or "unique constraint" in message


def transaction_payload(
    organization_id: Any, transaction: NormalizedTransaction, fingerprint: str
) -> dict:
    """Row shape written to ``bank_transactions``."""
    return {
        "organization_id": organization_id,
        "transaction_date": transaction.transaction_date.isoformat(),
        "value_date": (
            transaction.value_date.isoformat() if transaction.value_date else None
        ),
        "description": transaction.description,
        "amount": str(transaction.amount),
        "balance": str(transaction.balance) if transaction.balance is not None else None,
        "reference": transaction.reference,
        "counterparty": transaction.counterparty,
        "account_number": transaction.account_number,
        "currency": transaction.currency,
        "transaction_type": transaction.transaction_type,
        "fingerprint": fingerprint,
    }


class SupabaseLedger:
    """Append-only ledger over the ``bank_transactions`` table."""

    def __init__(self, client: Client, table: str = "bank_transactions"):
        self.client = client
        self.table = table

    def list_transactions(self, organization_id: Any) -> List[StoredTransaction]:
        try:
            result = (
                self.client.table(self.table)
                .select("*")
                .eq("organization_id", organization_id)
                .order("transaction_date", desc=True)
                .execute()
            )
        except APIError as e:
            logger.error("ledger_query_failed", organization_id=organization_id, error=str(e))
            raise PersistenceError(f"Failed to load ledger: {e}")
        except httpx.HTTPError as e:
            logger.error("ledger_unreachable", organization_id=organization_id, error=str(e))
            raise PersistenceError(f"Ledger request failed: {e}")
        return [StoredTransaction.from_record(row) for row in result.data or []]

    def insert_transaction(
        self, organization_id: Any, transaction: NormalizedTransaction, fingerprint: str
    ) -> StoredTransaction:
        payload = transaction_payload(organization_id, transaction, fingerprint)
        try:
            result = self.client.table(self.table).insert(payload).execute()
        except APIError as e:
            if _is_unique_violation(e):
                raise UniqueViolation(str(e))
            raise PersistenceError(f"Insert failed: {e}")
        except httpx.HTTPError as e:
            raise PersistenceError(f"Ledger request failed: {e}")
        if not result.data:
            raise PersistenceError("Insert returned no row")
        return StoredTransaction.from_record(result.data[0])


class SupabaseActivityLog:
    """Audit trail writer for ``activity_logs``."""

    def __init__(self, client: Client, table: str = "activity_logs"):
        self.client = client
        self.table = table

    def record_import(
        self, organization_id: Any, user_id: Any, summary: Mapping[str, Any]
    ) -> None:
        details = {k: v for k, v in summary.items() if k != "description"}
        self.client.table(self.table).insert(
            {
                "action": "IMPORT",
                "entity_type": "bank_transaction",
                "user_id": user_id,
                "organization_id": organization_id,
                "description": summary.get("description", "Imported bank transactions"),
                "details": {"organization_id": organization_id, **details},
            }
        ).execute()
