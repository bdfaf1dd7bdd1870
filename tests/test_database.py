# tests/test_database.py
"""Retry behaviour of run_in_transaction, using a stand-in Motor client."""
import pytest
from pymongo.errors import OperationFailure

from rental_app.core.errors import StockConflict
from rental_app.db import database


def write_conflict():
    return OperationFailure(
        "WriteConflict error: this operation conflicted with another operation.",
        code=112,
        details={"errorLabels": ["TransientTransactionError"]},
    )


class FakeTransaction:
    def __init__(self, log):
        self.log = log

    async def __aenter__(self):
        self.log.append("start")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.log.append("abort" if exc_type else "commit")
        return False


class FakeSession:
    def __init__(self, log):
        self.log = log

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.log.append("end_session")
        return False

    def start_transaction(self):
        return FakeTransaction(self.log)


class FakeClient:
    def __init__(self):
        self.log = []

    async def start_session(self):
        return FakeSession(self.log)


@pytest.fixture
def client(monkeypatch):
    fake = FakeClient()
    monkeypatch.setattr(database, "MONGO_USE_TRANSACTIONS", True)
    monkeypatch.setattr(database, "_client", fake)
    return fake


def failing(times, error_factory):
    calls = []

    async def callback(session):
        calls.append(session)
        if len(calls) <= times:
            raise error_factory()
        return "TRX20241207002"

    return callback, calls


async def test_write_conflict_is_retried_with_a_new_session(client):
    callback, calls = failing(1, write_conflict)

    assert await database.run_in_transaction(callback, max_attempts=3) == "TRX20241207002"
    assert len(calls) == 2
    assert calls[0] is not calls[1]
    assert client.log == ["start", "abort", "end_session", "start", "commit", "end_session"]


async def test_gives_up_after_max_attempts(client):
    callback, calls = failing(5, write_conflict)

    with pytest.raises(OperationFailure) as exc_info:
        await database.run_in_transaction(callback, max_attempts=3)
    assert exc_info.value.has_error_label("TransientTransactionError")
    assert len(calls) == 3


async def test_other_database_errors_are_not_retried(client):
    callback, calls = failing(1, lambda: OperationFailure("not authorized", code=13))

    with pytest.raises(OperationFailure):
        await database.run_in_transaction(callback, max_attempts=3)
    assert len(calls) == 1


async def test_domain_errors_abort_without_retry(client):
    callback, calls = failing(1, lambda: StockConflict("Stock of item 'Tenda Dome 4P' changed concurrently."))

    with pytest.raises(StockConflict):
        await database.run_in_transaction(callback, max_attempts=3)
    assert len(calls) == 1
    assert client.log == ["start", "abort", "end_session"]


async def test_without_transactions_callback_gets_no_session(monkeypatch):
    monkeypatch.setattr(database, "MONGO_USE_TRANSACTIONS", False)
    callback, calls = failing(0, write_conflict)

    assert await database.run_in_transaction(callback) == "TRX20241207002"
    assert calls == [None]
