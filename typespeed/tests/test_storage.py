from datetime import date

import pytest

from typespeed import models
from typespeed.auth import UserStore, find_or_create_google_user
from typespeed.database import SQLiteClient
from typespeed.errors import ConflictError, StorageError, UserExistsError
from typespeed.rate_limiter import RateLimiter
from typespeed.storage.csv_export import CSVExporter


def test_connect_creates_schema(tmp_path):
    client = SQLiteClient(str(tmp_path / "nested" / "db.sqlite"))
    client.connect()
    tables = {row["name"] for row in client.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"users", "test_results"} <= tables
    client.disconnect()
    assert client.connection is None


def test_sql_errors_become_storage_errors(db):
    with pytest.raises(StorageError):
        db.fetch_all("SELECT * FROM missing_table")


def test_username_is_unique_ignoring_case(db):
    db.execute("INSERT INTO users (username) VALUES (?)", ("alice",))
    with pytest.raises(ConflictError):
        db.execute("INSERT INTO users (username) VALUES (?)", ("ALICE",))


def test_duplicate_google_account_is_a_user_conflict(db):
    store = UserStore(db)
    store.create_user("first_user", google_id="g-1")
    with pytest.raises(UserExistsError):
        store.create_user("second_user", google_id="g-1")
    assert store.get_user_by_username("second_user") is None


def test_concurrent_google_signup_returns_existing_account(db, monkeypatch):
    store = UserStore(db)
    existing = store.create_user("someone", google_id="g-1")
    lookup = store.get_user_by_google_id
    calls = []

    def stale_first_lookup(google_id):
        # the other request has not committed yet on our first look
        calls.append(google_id)
        return None if len(calls) == 1 else lookup(google_id)

    monkeypatch.setattr(store, "get_user_by_google_id", stale_first_lookup)
    user = find_or_create_google_user({"sub": "g-1", "email": "jane@example.com"}, store)

    assert user["id"] == existing["id"]
    assert len(db.fetch_all("SELECT id FROM users")) == 1


def test_transaction_commits_all_statements(db):
    with db.transaction():
        db.execute("INSERT INTO users (username) VALUES (?)", ("alice",))
        db.execute("INSERT INTO users (username) VALUES (?)", ("bob_1",))
    assert len(db.fetch_all("SELECT id FROM users")) == 2


def test_transaction_rolls_back_every_statement(db):
    with pytest.raises(StorageError):
        with db.transaction():
            db.execute("INSERT INTO users (username) VALUES (?)", ("alice",))
            db.execute("DELETE FROM missing_table")
    assert db.fetch_all("SELECT id FROM users") == []

    with pytest.raises(RuntimeError):
        with db.transaction():
            db.execute("INSERT INTO users (username) VALUES (?)", ("alice",))
            raise RuntimeError("boom")
    assert db.fetch_all("SELECT id FROM users") == []


def test_csv_export():
    result = models.TestResult(
        id=1, username="alice", wpm=61.5, cpm=300, accuracy=97.25, total_time=60,
        difficulty="hard", total_characters=310, correct_characters=300,
        incorrect_characters=10, created_at="2026-03-01T10:00:00.000Z",
    )
    exporter = CSVExporter()
    assert exporter.render([result]) == (
        "Date,WPM,CPM,Accuracy (%),Time (s),Difficulty\n"
        "2026-03-01T10:00:00.000Z,61.5,300.0,97.25,60,hard\n"
    )
    assert exporter.render([]) == "Date,WPM,CPM,Accuracy (%),Time (s),Difficulty\n"
    assert exporter.filename("alice", on=date(2026, 3, 1)) == "typing-test-history-alice-2026-03-01.csv"


def test_rate_limiter_fixed_window(clock):
    limiter = RateLimiter(clock=clock)
    assert limiter.check("ip", 2, 60) == (True, None)
    assert limiter.check("ip", 2, 60) == (True, None)
    allowed, reset_time = limiter.check("ip", 2, 60)
    assert not allowed
    assert reset_time == 60
    assert limiter.check("other", 2, 60)[0]

    clock.advance(61)
    assert limiter.check("ip", 2, 60) == (True, None)
