"""Ledger and audit-log interfaces plus an in-memory ledger.

The ledger is append-only: this package only ever lists and inserts rows.
Implementations must raise ``UniqueViolation`` when an insert collides with an
existing ``(organization_id, fingerprint)`` and ``PersistenceError`` for any
other storage failure, including timeouts.
"""

import itertools
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Protocol, Tuple

from .errors import UniqueViolation
from .models import NormalizedTransaction, StoredTransaction


class Ledger(Protocol):
    def list_transactions(self, organization_id: Any) -> List[StoredTransaction]:
        ...

    def insert_transaction(
        self, organization_id: Any, transaction: NormalizedTransaction, fingerprint: str
    ) -> StoredTransaction:
        ...


class ActivityLog(Protocol):
    def record_import(
        self, organization_id: Any, user_id: Any, summary: Mapping[str, Any]
    ) -> None:
        ...


def stored_from_normalized(
    transaction: NormalizedTransaction,
    *,
    id: Any,
    organization_id: Any,
    fingerprint: str,
    created_at: datetime,
) -> StoredTransaction:
    return StoredTransaction(
        id=id,
        organization_id=organization_id,
        transaction_date=transaction.transaction_date,
        value_date=transaction.value_date,
        description=transaction.description,
        amount=transaction.amount,
        balance=transaction.balance,
        reference=transaction.reference,
        counterparty=transaction.counterparty,
        account_number=transaction.account_number,
        currency=transaction.currency,
        fingerprint=fingerprint,
        created_at=created_at,
    )


class InMemoryLedger:
    """Thread-safe ledger kept in process memory, with a unique fingerprint key."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._rows: Dict[Any, List[StoredTransaction]] = {}
        self._keys: set = set()

    def list_transactions(self, organization_id: Any) -> List[StoredTransaction]:
        with self._lock:
            return list(self._rows.get(organization_id, []))

    def insert_transaction(
        self, organization_id: Any, transaction: NormalizedTransaction, fingerprint: str
    ) -> StoredTransaction:
        key: Tuple[Any, str] = (organization_id, fingerprint)
        with self._lock:
            if key in self._keys:
                raise UniqueViolation(
                    f"duplicate key value violates unique constraint: {fingerprint}"
                )
            stored = stored_from_normalized(
                transaction,
                id=next(self._ids),
                organization_id=organization_id,
                fingerprint=fingerprint,
                created_at=datetime.now(timezone.utc),
            )
            self._keys.add(key)
            self._rows.setdefault(organization_id, []).append(stored)
            return stored


class OrganizationLocks:
    """One lock per organization so duplicate-check + commit never interleave."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Any, threading.Lock] = {}

    def for_organization(self, organization_id: Any) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(organization_id, threading.Lock())
