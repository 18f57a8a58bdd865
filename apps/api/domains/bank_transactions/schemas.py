"""Pydantic schemas for the bank-transactions domain."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from packages.statement_import.models import NormalizedTransaction


class TransactionIn(BaseModel):
    """A reviewed transaction sent back by the client.

    ``transaction_type`` is accepted for compatibility but ignored: it is
    always derived from the sign of ``amount``.
    """

    transaction_date: date
    value_date: Optional[date] = None
    description: str = ""
    amount: Decimal
    balance: Optional[Decimal] = None
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    account_number: Optional[str] = None
    currency: str = "DKK"
    transaction_type: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def to_normalized(self) -> NormalizedTransaction:
        return NormalizedTransaction(
            transaction_date=self.transaction_date,
            value_date=self.value_date,
            description=self.description.strip(),
            amount=self.amount,
            balance=self.balance,
            reference=(self.reference or "").strip() or None,
            counterparty=(self.counterparty or "").strip() or None,
            account_number=(self.account_number or "").strip() or None,
            currency=(self.currency or "DKK").strip().upper(),
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
        )


class TransactionOut(BaseModel):
    transaction_date: date
    value_date: Optional[date] = None
    description: str
    amount: float
    balance: Optional[float] = None
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    account_number: Optional[str] = None
    currency: str
    transaction_type: str
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class DateRangeOut(BaseModel):
    start: date
    end: date


class DroppedRowOut(BaseModel):
    row_number: int
    reason: str


class StatementUploadOut(BaseModel):
    """Parsed statement returned for review; nothing is stored yet."""

    filename: str
    uploaded_at: datetime
    transactions: list[TransactionOut]
    total_debits: float
    total_credits: float
    currency: str
    account_number: Optional[str] = None
    date_range: DateRangeOut
    dropped_rows: list[DroppedRowOut] = Field(default_factory=list)


class DuplicateCheckRequest(BaseModel):
    organization_id: int
    transactions: list[TransactionIn] = Field(..., min_length=1)


class DuplicateResult(BaseModel):
    index: int
    is_duplicate: bool
    match_reason: Optional[str] = None
    existing_transaction_id: Optional[Any] = None


class DuplicateCheckResponse(BaseModel):
    total: int
    duplicates: int
    unique: int
    results: list[DuplicateResult]


class CommitRequest(BaseModel):
    organization_id: int
    filename: Optional[str] = None
    transactions: list[TransactionIn] = Field(..., min_length=1)


class StoredTransactionOut(BaseModel):
    id: Optional[Any] = None
    organization_id: Optional[Any] = None
    transaction_date: date
    value_date: Optional[date] = None
    description: str
    amount: float
    balance: Optional[float] = None
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    account_number: Optional[str] = None
    currency: str
    transaction_type: str
    fingerprint: Optional[str] = None
    created_at: Optional[datetime] = None


class CommitResponse(BaseModel):
    inserted: int
    skipped: int
    total: int
    transactions: list[StoredTransactionOut]
    skipped_duplicates: Optional[list[str]] = None
    errors: Optional[list[str]] = None


class ImportHistoryItem(BaseModel):
    id: int
    filename: str
    uploaded_at: datetime
    transaction_count: int
    total_credits: float
    total_debits: float
    currency: str
    date_range_start: date
    date_range_end: date
