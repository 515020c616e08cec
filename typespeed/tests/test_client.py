import json
from unittest.mock import Mock

import pytest
import requests

from typespeed.client import ResultsApiClient, save_typing_test_result
from typespeed.errors import SubmissionError
from typespeed.session import TypingSession


def make_response(status_code, body):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode("utf-8")
    return response


@pytest.fixture
def http():
    session = requests.Session()
    session.request = Mock()
    return session


@pytest.fixture
def client(http):
    return ResultsApiClient("http://api.test/api/", token="abc", session=http, timeout=5)


def test_sets_auth_header(client, http):
    assert http.headers["Authorization"] == "Bearer abc"
    assert client.base_url == "http://api.test/api"


def test_save_result_returns_stored_row(client, http):
    http.request.return_value = make_response(201, {"success": True, "data": {"id": 7}})

    assert client.save_result({"username": "alice"}) == {"id": 7}
    http.request.assert_called_once_with("POST", "http://api.test/api/tests",
                                         timeout=5, json={"username": "alice"})


def test_validation_failure_carries_details(client, http):
    details = [{"loc": ["body", "wpm"], "msg": "too large"}]
    http.request.return_value = make_response(
        400, {"success": False, "error": "Validation failed", "details": details})

    with pytest.raises(SubmissionError) as exc_info:
        client.save_result({"username": "alice"})

    assert str(exc_info.value) == "Validation failed"
    assert exc_info.value.status_code == 400
    assert exc_info.value.details == details


def test_network_failure_is_a_submission_error(client, http):
    http.request.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(SubmissionError):
        client.get_leaderboard()


def test_non_json_error_body(client, http):
    response = requests.Response()
    response.status_code = 502
    response._content = b"<html>Bad Gateway</html>"
    http.request.return_value = response

    with pytest.raises(SubmissionError, match="status 502"):
        client.list_results("alice")


def test_list_results_drops_empty_filters(client, http):
    http.request.return_value = make_response(200, {"success": True, "data": {"data": []}})
    client.list_results("alice", limit=2, difficulty=None)
    assert http.request.call_args.kwargs["params"] == {"username": "alice", "limit": 2}


def test_stats_missing_user_is_none(client, http):
    http.request.return_value = make_response(404, {"success": False, "error": "No test results"})
    assert client.get_user_stats("nobody") is None


def test_leaderboard_params(client, http):
    http.request.return_value = make_response(200, {"success": True, "data": [{"wpm": 90}]})
    assert client.get_leaderboard("hard", limit=5) == [{"wpm": 90}]
    assert http.request.call_args.kwargs["params"] == {"limit": 5, "difficulty": "hard"}


def test_save_typing_test_result_submits_completed_session(client, http, clock):
    session = TypingSession("cat", clock=clock)
    session.type_text("cat")
    http.request.return_value = make_response(201, {"success": True, "data": {"id": 1}})

    save_typing_test_result(session, "alice", client)

    payload = http.request.call_args.kwargs["json"]
    assert payload["username"] == "alice"
    assert payload["total_characters"] == 3
    assert payload["test_text"] == "cat"


def test_save_typing_test_result_needs_username(client, clock):
    session = TypingSession("cat", clock=clock)
    session.type_text("cat")
    with pytest.raises(SubmissionError):
        save_typing_test_result(session, "", client)
