import pytest
from fastapi.testclient import TestClient

from typespeed.database import SQLiteClient, get_database
from typespeed.main import app
from typespeed.rate_limiter import rate_limiter
from typespeed.results_service import ResultsService


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def result_payload(username="alice", **overrides):
    payload = {
        "username": username,
        "wpm": 50,
        "cpm": 250,
        "accuracy": 95,
        "total_time": 60,
        "difficulty": "easy",
        "total_characters": 260,
        "correct_characters": 250,
        "incorrect_characters": 10,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path):
    client = SQLiteClient(str(tmp_path / "typespeed-test.sqlite"))
    client.connect()
    yield client
    client.disconnect()


@pytest.fixture
def service(db):
    return ResultsService(db)


@pytest.fixture
def set_created_at(db):
    """Pin a stored result's created_at so ordering tests don't depend on the clock"""

    def _set(result_id: int, created_at: str):
        db.execute("UPDATE test_results SET created_at = ? WHERE id = ?", (created_at, result_id))

    return _set


@pytest.fixture
def api(db):
    app.dependency_overrides[get_database] = lambda: db
    rate_limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()
    rate_limiter.reset()


@pytest.fixture
def auth_headers(api):
    """Register alice_t and return her bearer header"""
    response = api.post("/api/auth/register", json={"username": "alice_t", "password": "Secret123"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
