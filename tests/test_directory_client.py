"""
tests/test_directory_client.py -- Unit tests for the user directory HTTP client.

The requests.Session is a MagicMock, so no network traffic happens. Each test
checks either the outbound request shape or the mapping of a response (or
transport failure) onto RemoteProfile / RemoteConflict / UpstreamUnavailable.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from core.errors import RemoteConflict, UpstreamUnavailable
from directory.client import UserDirectoryClient
from directory.contracts import Provider, UserDirectory

BASE_URL = "http://users.internal:8080/"

PROFILE_BODY = {
    "id": 42,
    "email": "ana@site.com",
    "name": "Ana",
    "lastname": "Lee",
    "username": "ana",
    "provider": "LOCAL",
    "active": True,
}


def _response(status: int = 200, body=None, json_error: bool = False) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    if json_error:
        resp.json.side_effect = ValueError("no JSON")
    else:
        resp.json.return_value = body
    return resp


def _client(resp: MagicMock | None = None, **kwargs) -> tuple[UserDirectoryClient, MagicMock]:
    session = MagicMock()
    if resp is not None:
        session.post.return_value = resp
    return UserDirectoryClient(BASE_URL, session=session, **kwargs), session


class TestRequestShape:
    def test_satisfies_contract(self) -> None:
        client, _ = _client()
        assert isinstance(client, UserDirectory)

    def test_internal_token_and_timeout_are_sent(self) -> None:
        client, session = _client(_response(body={"exists": False}), internal_token="s3cret", timeout=2.5)
        client.exists_by_email("ana@site.com")

        args, kwargs = session.post.call_args
        assert args[0] == "http://users.internal:8080/users/exists/email"
        assert kwargs["json"] == {"email": "ana@site.com"}
        assert kwargs["headers"]["X-Internal-Token"] == "s3cret"
        assert kwargs["timeout"] == 2.5

    def test_no_token_header_when_unconfigured(self) -> None:
        client, session = _client(_response(body={"exists": False}))
        client.exists_by_username("ana")
        _, kwargs = session.post.call_args
        assert "X-Internal-Token" not in kwargs["headers"]

    def test_redirects_are_bounded(self) -> None:
        _, session = _client()
        assert session.max_redirects == 3

    def test_create_local_user_payload(self) -> None:
        client, session = _client(_response(201, PROFILE_BODY))
        client.create_local_user("Ana", "Lee", "ana", "ana@site.com", "secretpw1")
        args, kwargs = session.post.call_args
        assert args[0].endswith("/users/local")
        assert kwargs["json"] == {
            "name": "Ana",
            "lastname": "Lee",
            "username": "ana",
            "email": "ana@site.com",
            "provider": "LOCAL",
            "active": True,
            "password": "secretpw1",
        }

    def test_upsert_google_user_payload(self) -> None:
        body = dict(PROFILE_BODY, provider="GOOGLE", email="ana.maria@gmail.com")
        client, session = _client(_response(200, body))
        client.upsert_google_user("sub-1", "ana.maria@gmail.com", "Ana Maria Lee", "https://pic", True)
        args, kwargs = session.post.call_args
        assert args[0].endswith("/users/google")
        payload = kwargs["json"]
        assert payload["name"] == "Ana"
        assert payload["lastname"] == "Maria Lee"
        assert payload["username"] == "ana.maria"
        assert payload["provider"] == "GOOGLE"
        assert payload["googleSub"] == "sub-1"
        assert payload["emailVerified"] is True


class TestResponseMapping:
    def test_exists_flag(self) -> None:
        client, _ = _client(_response(body={"exists": True}))
        assert client.exists_by_email("ana@site.com") is True

    def test_exists_without_boolean_is_upstream_error(self) -> None:
        client, _ = _client(_response(body={"exists": "yes"}))
        with pytest.raises(UpstreamUnavailable):
            client.exists_by_email("ana@site.com")

    def test_create_returns_profile(self) -> None:
        client, _ = _client(_response(201, PROFILE_BODY))
        profile = client.create_local_user("Ana", "Lee", "ana", "ana@site.com", "secretpw1")
        assert profile.id == "42"
        assert profile.display_name == "Ana Lee"
        assert profile.provider == Provider.LOCAL

    def test_create_conflict(self) -> None:
        client, _ = _client(_response(409, {"message": "exists"}))
        with pytest.raises(RemoteConflict):
            client.create_local_user("Ana", "Lee", "ana", "ana@site.com", "secretpw1")

    def test_find_by_email_not_found(self) -> None:
        client, _ = _client(_response(404))
        assert client.find_by_email("nobody@site.com") is None

    def test_find_by_email_found(self) -> None:
        client, _ = _client(_response(200, dict(PROFILE_BODY, provider="GOOGLE")))
        profile = client.find_by_email("ana@site.com")
        assert profile.email == "ana@site.com"
        assert profile.provider == Provider.GOOGLE

    def test_unknown_provider_treated_as_local(self) -> None:
        client, _ = _client(_response(200, dict(PROFILE_BODY, provider="GITHUB")))
        assert client.find_by_email("ana@site.com").provider == Provider.LOCAL

    def test_profile_without_id_is_upstream_error(self) -> None:
        client, _ = _client(_response(200, {"email": "ana@site.com"}))
        with pytest.raises(UpstreamUnavailable):
            client.find_by_email("ana@site.com")


class TestFailures:
    @pytest.mark.parametrize("status", [500, 502, 503, 401])
    def test_unexpected_status(self, status: int) -> None:
        client, _ = _client(_response(status, {}))
        with pytest.raises(UpstreamUnavailable):
            client.find_by_email("ana@site.com")

    def test_404_on_create_is_unexpected(self) -> None:
        client, _ = _client(_response(404, {}))
        with pytest.raises(UpstreamUnavailable):
            client.create_local_user("Ana", "Lee", "ana", "ana@site.com", "secretpw1")

    @pytest.mark.parametrize(
        "exc",
        [requests.Timeout("slow"), requests.ConnectionError("refused"), requests.TooManyRedirects("loop")],
    )
    def test_transport_errors(self, exc: Exception) -> None:
        client, session = _client()
        session.post.side_effect = exc
        with pytest.raises(UpstreamUnavailable):
            client.exists_by_email("ana@site.com")

    def test_non_json_body(self) -> None:
        client, _ = _client(_response(200, json_error=True))
        with pytest.raises(UpstreamUnavailable):
            client.find_by_email("ana@site.com")

    def test_non_object_body(self) -> None:
        client, _ = _client(_response(200, ["not", "an", "object"]))
        with pytest.raises(UpstreamUnavailable):
            client.find_by_email("ana@site.com")
