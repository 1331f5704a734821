# Overview: Retry behavior of ledger units of work.

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from wipledger.errors import ConflictError
from wipledger.extensions import db
from wipledger.models import ReceiptAudit, WipReceipt
from wipledger.services import balance_service, receipt_service
from wipledger.services.balance_service import BalanceKey
from wipledger.services.concurrency import run_and_commit, run_with_retry

from conftest import TEST_DATE


class TestRunWithRetry:

    def test_replays_after_stale_version(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version_id mismatch")
            return "done"

        assert run_with_retry(_op, backoff_base=0) == "done"
        assert len(calls) == 2

    def test_gives_up_after_configured_attempts(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "WIP_RETRY_ATTEMPTS", 2)
        calls = []

        def _op():
            calls.append(1)
            raise StaleDataError("version_id mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(_op, backoff_base=0)
        assert len(calls) == 2

    def test_ledger_errors_are_not_retried(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            raise ConflictError("nope")

        with pytest.raises(ConflictError):
            run_with_retry(_op, backoff_base=0)
        assert len(calls) == 1


def _failing_commit(failures):
    """Commit stand-in that loses the first `failures` commits to a locked database."""
    calls = []

    def _commit():
        calls.append(1)
        if len(calls) <= failures:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        db.session.registry().commit()

    _commit.calls = calls
    return _commit


def _receive(route, quantity="10"):
    return receipt_service.add_receipt(
        part_id=route.part_id,
        op_number=15,
        section_id=route.turning.id,
        receipt_date=TEST_DATE,
        quantity=Decimal(quantity),
    )


class TestRunAndCommit:

    def test_lost_commit_replays_the_operation(self, db_session, route, monkeypatch):
        commit = _failing_commit(failures=1)
        monkeypatch.setattr(db.session, "commit", commit)

        result = run_and_commit(lambda: _receive(route), backoff_base=0)

        assert len(commit.calls) == 2
        assert result.balance_after == Decimal("10")
        assert balance_service.current_quantity(BalanceKey(route.part_id, route.turning.id, 15)) == Decimal("10")
        assert db_session.query(WipReceipt).count() == 1
        assert db_session.query(ReceiptAudit).count() == 1

    def test_exhausted_commits_persist_nothing(self, app, db_session, route, monkeypatch):
        monkeypatch.setitem(app.config, "WIP_RETRY_ATTEMPTS", 2)
        commit = _failing_commit(failures=2)
        monkeypatch.setattr(db.session, "commit", commit)

        with pytest.raises(OperationalError):
            run_and_commit(lambda: _receive(route), backoff_base=0)

        assert len(commit.calls) == 2
        assert balance_service.find_balance(BalanceKey(route.part_id, route.turning.id, 15)) is None
        assert db_session.query(WipReceipt).count() == 0

    def test_route_reports_exhausted_commit(self, app, client, db_session, route, monkeypatch):
        monkeypatch.setitem(app.config, "WIP_RETRY_ATTEMPTS", 1)
        monkeypatch.setattr(db.session, "commit", _failing_commit(failures=1))

        response = client.post("/api/wip/receipts", json={
            "part_id": route.part_id,
            "op_number": "015",
            "section_id": route.turning.id,
            "receipt_date": "2024-03-01",
            "quantity": "10",
        })

        assert response.status_code == 500
        assert db_session.query(WipReceipt).count() == 0
