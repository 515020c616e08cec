from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from typespeed import models
from typespeed.errors import StorageError
from typespeed.results_service import format_timestamp

from .conftest import result_payload


def seed(service, set_created_at, username, rows, start=datetime(2026, 1, 1, tzinfo=timezone.utc)):
    """Insert rows oldest first, one minute apart; each row is a dict of overrides"""
    created = []
    for i, overrides in enumerate(rows):
        result = service.create_result(result_payload(username, **overrides))
        set_created_at(result.id, format_timestamp(start + timedelta(minutes=i)))
        created.append(result)
    return created


class TestCreateResult:
    def test_returns_stored_row_with_assigned_fields(self, service):
        result = service.create_result(result_payload(test_text="the cat sat"))
        assert result.id >= 1
        assert result.username == "alice"
        assert result.test_text == "the cat sat"
        assert result.created_at.endswith("Z")
        assert datetime.fromisoformat(result.created_at.replace("Z", "+00:00"))

    def test_accepts_model_instances(self, service):
        payload = models.TestResultCreate(**result_payload(difficulty="hard"))
        assert service.create_result(payload).difficulty == "hard"

    @pytest.mark.parametrize("field, value", [
        ("wpm", 501),
        ("wpm", -1),
        ("cpm", 2501),
        ("accuracy", 100.5),
        ("total_time", 0),
        ("difficulty", "extreme"),
        ("total_characters", 0),
        ("correct_characters", -1),
        ("incorrect_characters", -1),
        ("username", "al"),
        ("username", "a" * 21),
        ("username", "bad-name"),
    ])
    def test_rejects_invalid_payload_before_storage(self, service, field, value):
        with pytest.raises(ValidationError) as exc_info:
            service.create_result(result_payload(**{field: value}))
        assert exc_info.value.errors()[0]["loc"] == (field,)
        assert service.list_results({"username": "alice"}).pagination.total == 0

    def test_rejects_more_counted_than_typed(self, service):
        with pytest.raises(ValidationError):
            service.create_result(result_payload(total_characters=5, correct_characters=4,
                                                 incorrect_characters=2))

    def test_storage_failure_is_a_storage_error(self, service, db):
        db.execute("DROP TABLE test_results")
        with pytest.raises(StorageError):
            service.create_result(result_payload())


class TestListResults:
    def test_alice_scenario(self, service):
        for wpm in (40, 60, 50):
            service.create_result(result_payload("alice", wpm=wpm, difficulty="easy"))

        page = service.list_results({"username": "alice", "limit": 2, "offset": 0})

        assert [r.wpm for r in page.data] == [50, 60]
        assert page.pagination.total == 3
        assert page.pagination.has_more is True

    @pytest.mark.parametrize("limit, offset, expected", [
        (2, 0, 2), (2, 4, 1), (2, 5, 0), (10, 0, 5), (1, 7, 0),
    ])
    def test_page_sizes(self, service, set_created_at, limit, offset, expected):
        seed(service, set_created_at, "bob_1", [{}] * 5)
        page = service.list_results({"username": "bob_1", "limit": limit, "offset": offset})
        assert len(page.data) == expected == min(limit, max(0, 5 - offset))
        assert page.pagination.has_more == (offset + limit < 5)
        created = [r.created_at for r in page.data]
        assert created == sorted(created, reverse=True)

    def test_only_returns_requested_user(self, service):
        service.create_result(result_payload("alice"))
        service.create_result(result_payload("bob_1"))
        page = service.list_results({"username": "alice"})
        assert [r.username for r in page.data] == ["alice"]
        assert page.pagination.limit == 50
        assert page.pagination.offset == 0

    def test_filters_by_difficulty_and_date_range(self, service, set_created_at):
        rows = seed(service, set_created_at, "alice", [
            {"difficulty": "easy"},
            {"difficulty": "hard"},
            {"difficulty": "hard"},
            {"difficulty": "hard"},
        ])
        start = datetime(2026, 1, 1, 0, 1, tzinfo=timezone.utc)
        end = datetime(2026, 1, 1, 0, 2, tzinfo=timezone.utc)

        page = service.list_results({"username": "alice", "difficulty": "hard",
                                     "start_date": start, "end_date": end})

        # both bounds inclusive
        assert [r.id for r in page.data] == [rows[2].id, rows[1].id]
        assert page.pagination.total == 2

    def test_naive_dates_are_utc(self, service, set_created_at):
        seed(service, set_created_at, "alice", [{}, {}])
        page = service.list_results({"username": "alice", "start_date": "2026-01-01T00:01:00"})
        assert page.pagination.total == 1

    @pytest.mark.parametrize("overrides", [{"limit": 0}, {"limit": 1001}, {"offset": -1}])
    def test_rejects_bad_paging(self, service, overrides):
        with pytest.raises(ValidationError):
            service.list_results({"username": "alice", **overrides})


class TestUserStats:
    def test_none_without_results(self, service):
        assert service.get_user_stats("nobody") is None

    def test_aggregates(self, service):
        service.create_result(result_payload(wpm=40, accuracy=90, total_time=60, difficulty="easy"))
        service.create_result(result_payload(wpm=61, accuracy=97.5, total_time=120, difficulty="hard"))
        service.create_result(result_payload(wpm=50, accuracy=93, total_time=60, difficulty="hard"))

        stats = service.get_user_stats("alice")

        assert stats.total_tests == 3
        assert stats.average_wpm == 50.33
        assert stats.average_accuracy == 93.5
        assert stats.best_wpm == 61
        assert stats.best_accuracy == 97.5
        assert stats.total_time_spent == 240
        assert stats.difficulty_breakdown.model_dump() == {"easy": 1, "medium": 0, "hard": 2}
        assert stats.improvement_trend.wpm_change == 0
        assert stats.improvement_trend.accuracy_change == 0

    @pytest.mark.parametrize("count", [10, 11, 19])
    def test_no_trend_without_a_full_previous_window(self, service, set_created_at, count):
        seed(service, set_created_at, "alice", [{"wpm": 10 + i} for i in range(count)])
        trend = service.get_user_stats("alice").improvement_trend
        assert trend.wpm_change == 0
        assert trend.accuracy_change == 0

    def test_trend_compares_last_ten_with_previous_ten(self, service, set_created_at):
        older = [{"wpm": 30, "accuracy": 80}] * 5
        previous = [{"wpm": 40, "accuracy": 90}] * 10
        recent = [{"wpm": 45.5, "accuracy": 92.25}] * 10
        seed(service, set_created_at, "alice", older + previous + recent)

        stats = service.get_user_stats("alice")

        assert stats.total_tests == 25
        assert stats.improvement_trend.wpm_change == 5.5
        assert stats.improvement_trend.accuracy_change == 2.25


class TestLeaderboard:
    def test_filters_sorts_and_limits(self, service):
        service.create_result(result_payload("alice", wpm=80, accuracy=90, difficulty="hard"))
        service.create_result(result_payload("bob_1", wpm=80, accuracy=99, difficulty="hard"))
        service.create_result(result_payload("carol", wpm=120, accuracy=85, difficulty="easy"))
        for wpm in (30, 55, 70, 65, 90):
            service.create_result(result_payload("dave_", wpm=wpm, difficulty="hard"))

        board = service.get_leaderboard(difficulty="hard", limit=5)

        assert len(board) == 5
        assert all(r.difficulty == "hard" for r in board)
        assert [(r.wpm, r.accuracy) for r in board] == sorted(
            [(r.wpm, r.accuracy) for r in board], reverse=True)
        assert [r.username for r in board[:3]] == ["dave_", "bob_1", "alice"]

    def test_defaults_to_all_difficulties(self, service):
        for i in range(12):
            service.create_result(result_payload(wpm=i, difficulty=("easy", "medium", "hard")[i % 3]))
        board = service.get_leaderboard()
        assert len(board) == 10
        assert board[0].wpm == 11


def test_delete_user_results_counts_rows(service):
    for _ in range(3):
        service.create_result(result_payload("alice"))
    service.create_result(result_payload("bob_1"))

    assert service.delete_user_results("alice") == 3
    assert service.delete_user_results("alice") == 0
    assert service.get_user_stats("alice") is None
    assert service.get_user_stats("bob_1").total_tests == 1
