"""
Results Query Service

Persists one row per completed typing test and answers the read side:
paginated history, per-user statistics and the leaderboard.
"""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Union

from fastapi import Depends

from .database import SQLiteClient, database, get_database
from .errors import StorageError
from .logger import get_logger
from .session.metrics import round_half_up
from .models import (
    DifficultyBreakdown,
    ImprovementTrend,
    PaginatedResults,
    Pagination,
    ResultsQuery,
    TestResult,
    TestResultCreate,
    UserStats,
)

logger = get_logger(__name__)

TREND_WINDOW = 10
LEADERBOARD_DEFAULT_LIMIT = 10


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the stored created_at format (naive means UTC)"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)


class ResultsService:
    """Create and query typing test results"""

    def __init__(self, client: SQLiteClient = database):
        self.client = client

    def create_result(self, payload: Union[TestResultCreate, Mapping[str, Any]]) -> TestResult:
        """
        Save a new test result and return the stored row.

        Raises pydantic.ValidationError for a malformed payload (nothing is
        written) and StorageError when the database fails.
        """
        if not isinstance(payload, TestResultCreate):
            payload = TestResultCreate.model_validate(payload)

        cursor = self.client.execute(
            """
            INSERT INTO test_results (
                username, wpm, cpm, accuracy, total_time, difficulty,
                total_characters, correct_characters, incorrect_characters, test_text
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                payload.username,
                payload.wpm,
                payload.cpm,
                payload.accuracy,
                payload.total_time,
                payload.difficulty,
                payload.total_characters,
                payload.correct_characters,
                payload.incorrect_characters,
                payload.test_text,
            ),
        )

        row = self.client.fetch_one("SELECT * FROM test_results WHERE id = ?", (cursor.lastrowid,))
        if row is None:
            raise StorageError("Failed to retrieve created test result")

        logger.info("Saved test result %s for %s (%.0f wpm, %s)",
                    row["id"], payload.username, payload.wpm, payload.difficulty)
        return TestResult(**row)

    def list_results(self, query: Union[ResultsQuery, Mapping[str, Any]]) -> PaginatedResults:
        """Get a user's results, newest first, with filtering and pagination"""
        if not isinstance(query, ResultsQuery):
            query = ResultsQuery.model_validate(query)

        conditions = ["username = ?"]
        params: List[Any] = [query.username]

        if query.difficulty:
            conditions.append("difficulty = ?")
            params.append(query.difficulty)
        if query.start_date:
            conditions.append("created_at >= ?")
            params.append(format_timestamp(query.start_date))
        if query.end_date:
            conditions.append("created_at <= ?")
            params.append(format_timestamp(query.end_date))

        where_clause = " AND ".join(conditions)

        count_row = self.client.fetch_one(
            f"SELECT COUNT(*) AS count FROM test_results WHERE {where_clause}", params
        )
        total = count_row["count"] if count_row else 0

        rows = self.client.fetch_all(
            f"""
            SELECT * FROM test_results
            WHERE {where_clause}
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            [*params, query.limit, query.offset],
        )

        return PaginatedResults(
            data=[TestResult(**row) for row in rows],
            pagination=Pagination(
                total=total,
                limit=query.limit,
                offset=query.offset,
                has_more=query.offset + query.limit < total,
            ),
        )

    def get_user_stats(self, username: str) -> Optional[UserStats]:
        """Aggregate statistics for a user, or None if they have no results"""
        stats = self.client.fetch_one(
            """
            SELECT
                username,
                COUNT(*) AS total_tests,
                ROUND(AVG(wpm), 2) AS average_wpm,
                ROUND(AVG(accuracy), 2) AS average_accuracy,
                MAX(wpm) AS best_wpm,
                MAX(accuracy) AS best_accuracy,
                SUM(total_time) AS total_time_spent,
                COUNT(CASE WHEN difficulty = 'easy' THEN 1 END) AS easy_count,
                COUNT(CASE WHEN difficulty = 'medium' THEN 1 END) AS medium_count,
                COUNT(CASE WHEN difficulty = 'hard' THEN 1 END) AS hard_count
            FROM test_results
            WHERE username = ?
            GROUP BY username
            """,
            (username,),
        )
        if not stats:
            return None

        # Last 10 tests vs the 10 before them
        recent_tests = self.client.fetch_all(
            """
            SELECT wpm, accuracy FROM test_results
            WHERE username = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (username, TREND_WINDOW * 2),
        )

        wpm_change = 0.0
        accuracy_change = 0.0
        recent = recent_tests[:TREND_WINDOW]
        previous = recent_tests[TREND_WINDOW:]
        # Only a full previous window yields a trend; 11-19 results report no change
        if len(previous) == TREND_WINDOW:
            wpm_change = _mean([t["wpm"] for t in recent]) - _mean([t["wpm"] for t in previous])
            accuracy_change = (_mean([t["accuracy"] for t in recent])
                               - _mean([t["accuracy"] for t in previous]))

        return UserStats(
            username=stats["username"],
            total_tests=stats["total_tests"],
            average_wpm=stats["average_wpm"],
            average_accuracy=stats["average_accuracy"],
            best_wpm=stats["best_wpm"],
            best_accuracy=stats["best_accuracy"],
            total_time_spent=stats["total_time_spent"],
            improvement_trend=ImprovementTrend(
                wpm_change=round_half_up(wpm_change, 2),
                accuracy_change=round_half_up(accuracy_change, 2),
            ),
            difficulty_breakdown=DifficultyBreakdown(
                easy=stats["easy_count"],
                medium=stats["medium_count"],
                hard=stats["hard_count"],
            ),
        )

    def get_leaderboard(self, difficulty: Optional[str] = None,
                        limit: int = LEADERBOARD_DEFAULT_LIMIT) -> List[TestResult]:
        """Best results across all users, optionally for one difficulty"""
        sql = "SELECT * FROM test_results WHERE 1=1"
        params: List[Any] = []

        if difficulty:
            sql += " AND difficulty = ?"
            params.append(difficulty)

        sql += " ORDER BY wpm DESC, accuracy DESC, id ASC LIMIT ?"
        params.append(limit)

        return [TestResult(**row) for row in self.client.fetch_all(sql, params)]

    def delete_user_results(self, username: str) -> int:
        """Delete all test results for a user (account deletion cleanup)"""
        cursor = self.client.execute("DELETE FROM test_results WHERE username = ?", (username,))
        logger.info("Deleted %d test results for %s", cursor.rowcount, username)
        return cursor.rowcount


def get_results_service(client: SQLiteClient = Depends(get_database)) -> ResultsService:
    """FastAPI dependency building the service on the request's database client"""
    return ResultsService(client)
