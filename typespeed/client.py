"""
Results API client.

Used by the typing front end to submit a finished session and to read back
history, statistics and the leaderboard. Authentication happens elsewhere:
the client is handed an already-resolved username and bearer token.
"""

from typing import Any, Dict, List, Optional

import requests

from .config import API_BASE_URL
from .errors import SubmissionError
from .logger import get_logger
from .session.tracker import TypingSession

logger = get_logger(__name__)


class ResultsApiClient:
    """Thin wrapper over the /api/tests endpoints"""

    def __init__(self, base_url: str = API_BASE_URL, token: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise SubmissionError(f"Could not reach results service: {e}") from e

    def _data(self, response: requests.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.ok or not body.get("success", False):
            raise SubmissionError(
                body.get("error") or f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                details=body.get("details"),
            )
        return body.get("data")

    def save_result(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Submit a result; raises SubmissionError so the caller can resubmit"""
        return self._data(self._request("POST", "/tests", json=payload))

    def list_results(self, username: str, **filters) -> Dict[str, Any]:
        params = {"username": username}
        params.update({key: value for key, value in filters.items() if value is not None})
        return self._data(self._request("GET", "/tests", params=params))

    def get_user_stats(self, username: str) -> Optional[Dict[str, Any]]:
        response = self._request("GET", f"/tests/stats/{username}")
        if response.status_code == 404:
            return None
        return self._data(response)

    def get_leaderboard(self, difficulty: Optional[str] = None, limit: int = 10) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if difficulty:
            params["difficulty"] = difficulty
        return self._data(self._request("GET", "/tests/leaderboard", params=params))


def save_typing_test_result(session: TypingSession, username: str,
                            client: ResultsApiClient) -> Dict[str, Any]:
    """Submit a completed session for username"""
    if not username:
        raise SubmissionError("Username is required to save test results")
    return client.save_result(session.result_payload(username))
