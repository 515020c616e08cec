import csv
import io
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from ..models import TestResult

HEADERS = ["Date", "WPM", "CPM", "Accuracy (%)", "Time (s)", "Difficulty"]


class CSVExporter:
    """Renders a user's result history as CSV for download"""

    def render(self, results: Iterable[TestResult]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(HEADERS)
        for result in results:
            writer.writerow([
                result.created_at,
                result.wpm,
                result.cpm,
                result.accuracy,
                result.total_time,
                result.difficulty,
            ])
        return buffer.getvalue()

    def filename(self, username: str, on: Optional[date] = None) -> str:
        on = on or datetime.now(timezone.utc).date()
        return f"typing-test-history-{username}-{on.isoformat()}.csv"


csv_exporter = CSVExporter()
