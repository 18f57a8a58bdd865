"""Bank-transactions router: statement upload, duplicate check and commit.

Flow: the client uploads a statement and reviews the parsed result, asks
which rows already exist in the ledger, then commits its final selection.
Nothing is persisted before the commit call.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from supabase import Client

from apps.api.core.auth import get_current_user_id, get_user_client
from apps.api.core.config import settings
from apps.api.core.errors import BadRequestError, PayloadTooLargeError
from apps.api.domains.bank_transactions import service
from apps.api.domains.bank_transactions.repository import (
    SupabaseActivityLog,
    SupabaseLedger,
)
from apps.api.domains.bank_transactions.schemas import (
    CommitRequest,
    CommitResponse,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    DuplicateResult,
    ImportHistoryItem,
    StatementUploadOut,
    StoredTransactionOut,
)
from packages.statement_import import ActivityLog, Ledger

router = APIRouter(prefix="/bank-transactions", tags=["bank-transactions"])
logger = structlog.get_logger()

DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024


def _max_upload_bytes() -> int:
    return settings.MAX_UPLOAD_BYTES if settings else DEFAULT_MAX_UPLOAD_BYTES


def _default_currency() -> str:
    return settings.DEFAULT_CURRENCY if settings else "DKK"


def get_ledger(client: Client = Depends(get_user_client)) -> Ledger:
    return SupabaseLedger(client)


def get_activity_log(client: Client = Depends(get_user_client)) -> ActivityLog:
    return SupabaseActivityLog(client)


@router.post("/upload", response_model=StatementUploadOut)
async def upload_statement(
    file: UploadFile = File(...),
    password: Optional[str] = Form(None),
    user_id: str = Depends(get_current_user_id),
):
    """Parse a CSV/TSV or Excel statement for review.

    Returns normalized transactions with per-row warnings, totals, detected
    currency/account and the date range. Rows with unparseable dates are
    dropped and listed in ``dropped_rows``.
    """
    filename = file.filename or ""
    if not service.is_allowed_filename(filename):
        raise BadRequestError(
            f"Unsupported file type. Accepted: {', '.join(service.ALLOWED_EXTENSIONS)}"
        )

    contents = await file.read()
    max_bytes = _max_upload_bytes()
    if len(contents) > max_bytes:
        raise PayloadTooLargeError(f"File too large (max {max_bytes // (1024 * 1024)}MB)")

    upload = service.parse_upload(
        contents, filename, password=password, default_currency=_default_currency()
    )
    return upload.to_dict()


@router.post("/check-duplicates", response_model=DuplicateCheckResponse)
def check_duplicates(
    body: DuplicateCheckRequest,
    ledger: Ledger = Depends(get_ledger),
    user_id: str = Depends(get_current_user_id),
):
    """Classify each candidate as duplicate/new against the stored ledger."""
    candidates = [tx.to_normalized() for tx in body.transactions]
    verdicts = service.find_duplicates(ledger, body.organization_id, candidates)

    results = [
        DuplicateResult(
            index=index,
            is_duplicate=verdict.is_duplicate,
            match_reason=verdict.match_reason,
            existing_transaction_id=verdict.existing_transaction_id,
        )
        for index, verdict in enumerate(verdicts)
    ]
    duplicates = sum(1 for r in results if r.is_duplicate)
    return DuplicateCheckResponse(
        total=len(results),
        duplicates=duplicates,
        unique=len(results) - duplicates,
        results=results,
    )


@router.post(
    "",
    response_model=CommitResponse,
    response_model_exclude_none=True,
    status_code=201,
)
def commit_transactions(
    body: CommitRequest,
    ledger: Ledger = Depends(get_ledger),
    activity_log: ActivityLog = Depends(get_activity_log),
    user_id: str = Depends(get_current_user_id),
):
    """Persist the reviewed selection; partial failures are reported, not raised."""
    transactions = [tx.to_normalized() for tx in body.transactions]
    result = service.commit_transactions(
        ledger,
        body.organization_id,
        body.filename,
        transactions,
        activity_log=activity_log,
        user_id=user_id,
    )
    return result.to_dict()


@router.get("", response_model=list[StoredTransactionOut])
def list_transactions(
    organization_id: int = Query(...),
    ledger: Ledger = Depends(get_ledger),
    user_id: str = Depends(get_current_user_id),
):
    """List an organization's committed bank transactions, newest first."""
    records = ledger.list_transactions(organization_id)
    records.sort(
        key=lambda r: (r.transaction_date, r.created_at.isoformat() if r.created_at else ""),
        reverse=True,
    )
    return [r.to_dict() for r in records]


@router.get("/import-history", response_model=list[ImportHistoryItem])
def import_history(
    organization_id: int = Query(...),
    ledger: Ledger = Depends(get_ledger),
    user_id: str = Depends(get_current_user_id),
):
    """Recent import batches grouped by upload day, account and currency."""
    return service.import_history(ledger, organization_id)
