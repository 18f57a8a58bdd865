"""Tests for the bank-transactions router."""

import pytest
from unittest.mock import MagicMock
from fastapi import FastAPI
from fastapi.testclient import TestClient

from apps.api.core.auth import get_current_user_id
from apps.api.core.errors import register_error_handlers
from apps.api.domains.bank_transactions import router as router_module
from apps.api.domains.bank_transactions.router import (
    get_activity_log,
    get_ledger,
    router,
)
from packages.statement_import import InMemoryLedger, PersistenceError

STATEMENT = (
    "Dato;Tekst;Beløb;Saldo\n"
    "01-03-2024;Salary;15000,00;20000,00\n"
    "02-03-2024;Rent;-5000,00;15000,00\n"
    "03-03-2024;;0,00;15000,00\n"
).encode("utf-8")

REVIEWED = [
    {"transaction_date": "2024-03-01", "description": "Salary", "amount": 15000.0, "currency": "DKK"},
    {"transaction_date": "2024-03-02", "description": "Rent", "amount": -5000.0, "currency": "DKK"},
    {"transaction_date": "2024-03-03", "description": "", "amount": 0.0, "currency": "DKK"},
]


class BrokenLedger(InMemoryLedger):
    def list_transactions(self, organization_id):
        raise PersistenceError("Ledger request failed: timed out")


@pytest.fixture
def app():
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(router, prefix="/api/v1")
    return app


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def activity_log():
    return MagicMock()


@pytest.fixture
def client(app, ledger, activity_log):
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_activity_log] = lambda: activity_log
    app.dependency_overrides[get_current_user_id] = lambda: "test-user-123"
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()


def _upload(client, content=STATEMENT, filename="marts.csv"):
    return client.post(
        "/api/v1/bank-transactions/upload",
        files={"file": (filename, content, "text/csv")},
    )


class TestUpload:
    def test_upload_returns_parsed_statement(self, client):
        response = _upload(client)

        assert response.status_code == 200
        data = response.json()
        assert data["filename"] == "marts.csv"
        assert len(data["transactions"]) == 3
        assert data["total_credits"] == 15000.0
        assert data["total_debits"] == 5000.0
        assert data["currency"] == "DKK"
        assert data["date_range"] == {"start": "2024-03-01", "end": "2024-03-03"}
        assert data["transactions"][2]["warnings"] == ["Missing description", "Zero amount"]

    def test_upload_nothing_is_persisted(self, client, ledger):
        _upload(client)
        assert ledger.list_transactions(1) == []

    def test_unsupported_extension_is_rejected(self, client):
        response = _upload(client, filename="statement.pdf")

        assert response.status_code == 400
        assert response.json()["title"] == "Bad Request"

    def test_oversized_upload_is_rejected(self, client, monkeypatch):
        monkeypatch.setattr(router_module, "_max_upload_bytes", lambda: 10)

        response = _upload(client)

        assert response.status_code == 413

    def test_missing_columns_is_unprocessable(self, client):
        response = _upload(client, content=b"Date;Amount\n2024-01-01;10\n")

        assert response.status_code == 422
        assert "description" in response.json()["detail"]

    def test_empty_file_is_unprocessable(self, client):
        response = _upload(client, content=b"")

        assert response.status_code == 422

    def test_dropped_rows_are_reported(self, client):
        content = STATEMENT.replace(b"02-03-2024", b"not a date")

        data = _upload(client, content=content).json()

        assert len(data["transactions"]) == 2
        assert len(data["dropped_rows"]) == 1


class TestCheckDuplicates:
    def test_new_rows_are_unique(self, client):
        response = client.post(
            "/api/v1/bank-transactions/check-duplicates",
            json={"organization_id": 1, "transactions": REVIEWED},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["duplicates"] == 0
        assert data["unique"] == 3

    def test_committed_rows_are_flagged(self, client):
        client.post(
            "/api/v1/bank-transactions",
            json={"organization_id": 1, "transactions": REVIEWED[1:2]},
        )

        data = client.post(
            "/api/v1/bank-transactions/check-duplicates",
            json={"organization_id": 1, "transactions": REVIEWED},
        ).json()

        assert data["duplicates"] == 1
        rent = data["results"][1]
        assert rent["index"] == 1
        assert rent["is_duplicate"] is True
        assert rent["match_reason"] == "date+amount+description (no reference/account available)"
        assert rent["existing_transaction_id"] == 1

    def test_empty_batch_is_rejected(self, client):
        response = client.post(
            "/api/v1/bank-transactions/check-duplicates",
            json={"organization_id": 1, "transactions": []},
        )
        assert response.status_code == 422

    def test_ledger_failure_is_service_unavailable(self, app, client):
        app.dependency_overrides[get_ledger] = lambda: BrokenLedger()

        response = client.post(
            "/api/v1/bank-transactions/check-duplicates",
            json={"organization_id": 1, "transactions": REVIEWED},
        )

        assert response.status_code == 503
        assert response.json()["title"] == "Service Unavailable"


class TestCommit:
    def test_commit_returns_201(self, client, activity_log):
        response = client.post(
            "/api/v1/bank-transactions",
            json={"organization_id": 1, "filename": "marts.csv", "transactions": REVIEWED},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["inserted"] == 3
        assert data["skipped"] == 0
        assert data["total"] == 3
        assert "skipped_duplicates" not in data
        assert data["transactions"][1]["transaction_type"] == "debit"
        activity_log.record_import.assert_called_once()

    def test_commit_is_idempotent(self, client, ledger):
        body = {"organization_id": 1, "transactions": REVIEWED}
        client.post("/api/v1/bank-transactions", json=body)

        data = client.post("/api/v1/bank-transactions", json=body).json()

        assert data["inserted"] == 0
        assert data["skipped"] == 3
        assert len(data["skipped_duplicates"]) == 3
        assert len(ledger.list_transactions(1)) == 3

    def test_client_transaction_type_is_ignored(self, client):
        tx = dict(REVIEWED[1], transaction_type="credit")

        data = client.post(
            "/api/v1/bank-transactions",
            json={"organization_id": 1, "transactions": [tx]},
        ).json()

        assert data["transactions"][0]["transaction_type"] == "debit"


class TestListAndHistory:
    def test_list_is_newest_first(self, client):
        client.post(
            "/api/v1/bank-transactions",
            json={"organization_id": 1, "transactions": REVIEWED},
        )

        response = client.get("/api/v1/bank-transactions", params={"organization_id": 1})

        assert response.status_code == 200
        dates = [tx["transaction_date"] for tx in response.json()]
        assert dates == ["2024-03-03", "2024-03-02", "2024-03-01"]

    def test_list_requires_organization(self, client):
        assert client.get("/api/v1/bank-transactions").status_code == 422

    def test_import_history_groups_commit(self, client):
        client.post(
            "/api/v1/bank-transactions",
            json={"organization_id": 1, "transactions": REVIEWED},
        )

        history = client.get(
            "/api/v1/bank-transactions/import-history", params={"organization_id": 1}
        ).json()

        assert len(history) == 1
        assert history[0]["transaction_count"] == 3
        assert history[0]["total_credits"] == 15000.0
        assert history[0]["total_debits"] == 5000.0
        assert history[0]["filename"].startswith("Bank Statement Import - ")
