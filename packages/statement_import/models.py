"""Canonical data model for imported bank statements."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class ColumnRole(str, Enum):
    """Semantic role a statement column can play."""

    DATE = "date"
    VALUE_DATE = "value_date"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    DEBIT = "debit"
    CREDIT = "credit"
    BALANCE = "balance"
    REFERENCE = "reference"
    COUNTERPARTY = "counterparty"
    ACCOUNT = "account"
    CURRENCY = "currency"


@dataclass(frozen=True)
class ColumnMapping:
    """Resolved column index per role; ``None`` means the role is absent."""

    indices: Mapping[ColumnRole, Optional[int]]

    def __post_init__(self):
        resolved = {role: self.indices.get(role) for role in ColumnRole}
        object.__setattr__(self, "indices", MappingProxyType(resolved))

    def get(self, role: ColumnRole) -> Optional[int]:
        return self.indices[role]

    def has(self, role: ColumnRole) -> bool:
        return self.indices[role] is not None

    def cell(self, row: List[str], role: ColumnRole) -> str:
        """Return the trimmed cell for ``role``, or ``""`` when absent/short."""
        index = self.indices[role]
        if index is None or index >= len(row):
            return ""
        return row[index].strip()


def transaction_type_for(amount: Decimal) -> str:
    return "credit" if amount >= 0 else "debit"


@dataclass(frozen=True)
class NormalizedTransaction:
    """One statement line in bank-agnostic form."""

    transaction_date: date
    description: str
    amount: Decimal
    currency: str
    value_date: Optional[date] = None
    balance: Optional[Decimal] = None
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    account_number: Optional[str] = None
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def transaction_type(self) -> str:
        return transaction_type_for(self.amount)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "transaction_date": self.transaction_date.isoformat(),
            "value_date": self.value_date.isoformat() if self.value_date else None,
            "description": self.description,
            "amount": float(self.amount),
            "balance": float(self.balance) if self.balance is not None else None,
            "reference": self.reference,
            "counterparty": self.counterparty,
            "account_number": self.account_number,
            "currency": self.currency,
            "transaction_type": self.transaction_type,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class Accepted:
    """A row that produced a transaction (possibly with warnings)."""

    row_number: int
    transaction: NormalizedTransaction

    @property
    def warnings(self) -> Tuple[str, ...]:
        return self.transaction.warnings


@dataclass(frozen=True)
class Dropped:
    """A row excluded from the statement because of a hard error."""

    row_number: int
    reason: str


RowOutcome = Union[Accepted, Dropped]


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"date range start {self.start} is after end {self.end}")


@dataclass(frozen=True)
class StatementUpload:
    """Parsed statement held by the caller for the review step. Never persisted."""

    filename: str
    uploaded_at: datetime
    transactions: Tuple[NormalizedTransaction, ...]
    total_debits: Decimal
    total_credits: Decimal
    currency: str
    date_range: DateRange
    account_number: Optional[str] = None
    dropped: Tuple[Dropped, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "uploaded_at": self.uploaded_at.isoformat(),
            "transactions": [tx.to_dict() for tx in self.transactions],
            "total_debits": float(self.total_debits),
            "total_credits": float(self.total_credits),
            "currency": self.currency,
            "account_number": self.account_number,
            "date_range": {
                "start": self.date_range.start.isoformat(),
                "end": self.date_range.end.isoformat(),
            },
            "dropped_rows": [
                {"row_number": d.row_number, "reason": d.reason} for d in self.dropped
            ],
        }


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return Decimal(str(value))


@dataclass(frozen=True)
class StoredTransaction:
    """A committed ledger row. Append-only: never mutated after insert."""

    id: Any
    organization_id: Any
    transaction_date: date
    description: str
    amount: Decimal
    currency: str
    value_date: Optional[date] = None
    balance: Optional[Decimal] = None
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    account_number: Optional[str] = None
    fingerprint: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def transaction_type(self) -> str:
        return transaction_type_for(self.amount)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "StoredTransaction":
        """Build from a ledger row (e.g. a PostgREST JSON record)."""
        created_at = record.get("created_at")
        if isinstance(created_at, str) and created_at:
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            id=record.get("id"),
            organization_id=record.get("organization_id"),
            transaction_date=_as_date(record["transaction_date"]),
            description=record.get("description") or "",
            amount=_as_decimal(record["amount"]),
            currency=record.get("currency") or "",
            value_date=_as_date(record.get("value_date")),
            balance=_as_decimal(record.get("balance")),
            reference=record.get("reference") or None,
            counterparty=record.get("counterparty") or None,
            account_number=record.get("account_number") or None,
            fingerprint=record.get("fingerprint"),
            created_at=created_at or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "transaction_date": self.transaction_date.isoformat(),
            "value_date": self.value_date.isoformat() if self.value_date else None,
            "description": self.description,
            "amount": float(self.amount),
            "balance": float(self.balance) if self.balance is not None else None,
            "reference": self.reference,
            "counterparty": self.counterparty,
            "account_number": self.account_number,
            "currency": self.currency,
            "transaction_type": self.transaction_type,
            "fingerprint": self.fingerprint,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class DuplicateVerdict:
    is_duplicate: bool
    match_reason: Optional[str] = None
    existing_transaction_id: Any = None


@dataclass
class ImportResult:
    """Outcome of one commit call; always returned, never all-or-nothing."""

    total: int
    inserted: List[StoredTransaction] = field(default_factory=list)
    skipped_duplicates: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_duplicates)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "inserted": self.inserted_count,
            "skipped": self.skipped_count,
            "total": self.total,
            "transactions": [tx.to_dict() for tx in self.inserted],
        }
        if self.skipped_duplicates:
            result["skipped_duplicates"] = list(self.skipped_duplicates)
        if self.errors:
            result["errors"] = list(self.errors)
        return result
