"""Bank-transactions service: glue between the HTTP layer and the pipeline.

Duplicate checks and commits for one organization run under that
organization's lock so two imports never interleave their ledger snapshot
and inserts inside this process. The ledger's unique fingerprint index stays
the backstop across processes.
"""

from typing import Any, Optional, Sequence

import structlog

from packages.statement_import import (
    ActivityLog,
    Ledger,
    NormalizedTransaction,
    OrganizationLocks,
    StatementUpload,
    check_duplicates,
    commit_import,
    parse_bank_statement,
)
from packages.statement_import.aggregator import summarize_import_history
from packages.statement_import.models import DuplicateVerdict, ImportResult

logger = structlog.get_logger()

organization_locks = OrganizationLocks()

ALLOWED_EXTENSIONS = (".csv", ".tsv", ".txt", ".xls", ".xlsx", ".xlsm")


def is_allowed_filename(filename: str) -> bool:
    return (filename or "").lower().endswith(ALLOWED_EXTENSIONS)


def parse_upload(
    contents: bytes,
    filename: str,
    password: Optional[str] = None,
    default_currency: str = "DKK",
) -> StatementUpload:
    upload = parse_bank_statement(
        contents, filename, password=password, default_currency=default_currency
    )
    logger.info(
        "statement_parsed",
        filename=filename,
        transactions=len(upload.transactions),
        dropped=len(upload.dropped),
        currency=upload.currency,
    )
    return upload


def find_duplicates(
    ledger: Ledger,
    organization_id: Any,
    transactions: Sequence[NormalizedTransaction],
    locks: OrganizationLocks = organization_locks,
) -> list[DuplicateVerdict]:
    with locks.for_organization(organization_id):
        existing = ledger.list_transactions(organization_id)
        verdicts = check_duplicates(transactions, existing)
    logger.info(
        "duplicates_checked",
        organization_id=organization_id,
        total=len(verdicts),
        duplicates=sum(1 for v in verdicts if v.is_duplicate),
    )
    return verdicts


def commit_transactions(
    ledger: Ledger,
    organization_id: Any,
    filename: Optional[str],
    transactions: Sequence[NormalizedTransaction],
    activity_log: Optional[ActivityLog] = None,
    user_id: Any = None,
    locks: OrganizationLocks = organization_locks,
) -> ImportResult:
    with locks.for_organization(organization_id):
        result = commit_import(
            ledger,
            organization_id,
            filename,
            transactions,
            activity_log=activity_log,
            user_id=user_id,
        )
    logger.info(
        "import_committed",
        organization_id=organization_id,
        filename=filename,
        inserted=result.inserted_count,
        skipped=result.skipped_count,
        errors=len(result.errors),
    )
    return result


def import_history(ledger: Ledger, organization_id: Any, limit: int = 20) -> list[dict]:
    return summarize_import_history(ledger.list_transactions(organization_id), limit=limit)
