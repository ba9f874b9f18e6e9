"""Tests for API request/response logging."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from src.trello.api_logging import (
    LoggingTransport,
    _reset_sequence,
    _sanitize_headers,
    clear_logs,
    create_logging_client,
    get_log_directory,
    is_api_logging_enabled,
    log_request,
    log_response,
    sanitize_url,
)
from src.trello.client import TrelloClient


class TestApiLoggingEnabled:
    """Tests for is_api_logging_enabled()."""

    def test_disabled_by_default(self):
        """API logging is disabled when env var is not set."""
        assert is_api_logging_enabled() is False

    @pytest.mark.parametrize("value", ["1", "true", "yes", "ON"])
    def test_enabled(self, value):
        """API logging is enabled by truthy values of TRO_LOG_API."""
        with patch.dict(os.environ, {"TRO_LOG_API": value}):
            assert is_api_logging_enabled() is True

    @pytest.mark.parametrize("value", ["0", "false", ""])
    def test_disabled(self, value):
        with patch.dict(os.environ, {"TRO_LOG_API": value}):
            assert is_api_logging_enabled() is False


class TestLogDirectory:
    """Tests for get_log_directory()."""

    def test_default_directory(self):
        """Default log directory is ~/.tro/api_logs/."""
        assert get_log_directory() == Path.home() / ".tro" / "api_logs"

    def test_custom_directory(self):
        """Custom log directory via TRO_LOG_API_DIR."""
        with patch.dict(os.environ, {"TRO_LOG_API_DIR": "/tmp/my_logs"}):
            assert get_log_directory() == Path("/tmp/my_logs")


class TestSanitize:
    """Tests for credential redaction."""

    def test_key_and_token_params_are_redacted(self):
        url = sanitize_url("https://api.trello.com/1/cards/c1?key=abc&token=secret&fields=name")

        assert "abc" not in url
        assert "secret" not in url
        assert "fields=name" in url
        assert httpx.URL(url).params["token"] == "[REDACTED]"

    def test_url_without_params(self):
        assert sanitize_url("https://api.trello.com/1/members/me") == (
            "https://api.trello.com/1/members/me"
        )

    def test_masks_authorization_header(self):
        result = _sanitize_headers({"Authorization": 'OAuth oauth_token="secret"'})
        assert result["Authorization"] == "OAuth [REDACTED]"

    def test_preserves_other_headers(self):
        result = _sanitize_headers({"Accept": "application/json"})
        assert result["Accept"] == "application/json"


class TestLogRequestResponse:
    """Tests for logging requests and responses to files."""

    @pytest.fixture
    def log_env(self, tmp_path):
        _reset_sequence()
        with patch.dict(os.environ, {"TRO_LOG_API": "1", "TRO_LOG_API_DIR": str(tmp_path)}):
            yield tmp_path

    def test_logs_request_when_enabled(self, log_env):
        request = httpx.Request(
            "PUT",
            "https://api.trello.com/1/cards/c1?key=k&token=t",
            json={"desc": "New"},
        )
        log_request(request)

        data = json.loads((log_env / "0001_request.json").read_text())
        assert data["sequence"] == 1
        assert data["method"] == "PUT"
        assert data["resource"] == "cards"
        assert data["body"] == {"desc": "New"}
        assert "token=t" not in data["url"]

    def test_upload_body_is_not_read(self, log_env):
        request = httpx.Request(
            "POST",
            "https://api.trello.com/1/cards/c1/attachments",
            files={"file": ("notes.txt", b"secret notes", "text/plain")},
        )
        log_request(request)

        data = json.loads((log_env / "0001_request.json").read_text())
        assert data["body"] == "<multipart/form-data body>"
        assert b"secret notes" in request.read()

    def test_response_shares_request_sequence(self, log_env):
        request = httpx.Request("GET", "https://api.trello.com/1/members/me")
        log_request(request)
        response = httpx.Response(200, json={"username": "alice"}, request=request)

        log_response(response)

        data = json.loads((log_env / "0001_response.json").read_text())
        assert data["status_code"] == 200
        assert data["body"]["username"] == "alice"

    def test_no_log_when_disabled(self, tmp_path):
        with patch.dict(os.environ, {"TRO_LOG_API": "0", "TRO_LOG_API_DIR": str(tmp_path)}):
            log_request(httpx.Request("GET", "https://api.trello.com/1/members/me"))

        assert list(tmp_path.glob("*.json")) == []

    def test_transport_writes_response_file(self, log_env):
        """The wrapped transport's response is logged under the request's sequence."""
        inner = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "c1"}))
        transport = LoggingTransport(inner)

        response = transport.handle_request(
            httpx.Request("GET", "https://api.trello.com/1/cards/c1?key=k&token=t")
        )

        assert response.request.url.path == "/1/cards/c1"
        data = json.loads((log_env / "0001_response.json").read_text())
        assert data["sequence"] == 1
        assert data["resource"] == "cards"
        assert data["body"] == {"id": "c1"}
        assert "token=t" not in data["url"]

    def test_client_traffic_is_logged(self, log_env, fake, credentials):
        with TrelloClient(credentials, transport=fake.transport) as client:
            assert isinstance(client._client._transport, LoggingTransport)
            client.get_card("c1")

        request = json.loads((log_env / "0001_request.json").read_text())
        response = json.loads((log_env / "0001_response.json").read_text())
        assert request["resource"] == "cards"
        assert "test-token" not in request["url"]
        assert response["body"]["name"] == "Fix login"


class TestClearLogs:
    """Tests for clear_logs()."""

    def test_clears_all_json_files(self, tmp_path):
        (tmp_path / "0001_request.json").write_text("{}")
        (tmp_path / "0001_response.json").write_text("{}")

        with patch.dict(os.environ, {"TRO_LOG_API_DIR": str(tmp_path)}):
            assert clear_logs() == 2

        assert list(tmp_path.glob("*.json")) == []

    def test_returns_zero_for_nonexistent_dir(self, tmp_path):
        with patch.dict(os.environ, {"TRO_LOG_API_DIR": str(tmp_path / "missing")}):
            assert clear_logs() == 0


class TestCreateLoggingClient:
    """Tests for create_logging_client()."""

    def test_returns_regular_client_when_disabled(self):
        client = create_logging_client()
        assert not isinstance(client._transport, LoggingTransport)
        client.close()

    def test_returns_logging_client_when_enabled(self):
        with patch.dict(os.environ, {"TRO_LOG_API": "1"}):
            client = create_logging_client()
            assert isinstance(client._transport, LoggingTransport)
            client.close()

    def test_passes_headers(self):
        client = create_logging_client(headers={"Accept": "application/json"})
        assert client.headers.get("Accept") == "application/json"
        client.close()
