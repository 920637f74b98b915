"""Tests for the remote QTI service client (transport only, no network)."""
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from qticraft.core.errors import QtiApiError, QtiNotFoundError
from qticraft.services.qti_client import QtiClient


# ── Helper builders ───────────────────────────────────────────────────────────

def _response(status=200, payload=None, text=None):
    resp = MagicMock()
    resp.status_code = status
    if payload is not None:
        resp.json.return_value = payload
        resp.text = text if text is not None else str(payload)
    else:
        resp.json.side_effect = ValueError("no json")
        resp.text = text or ""
    resp.content = resp.text.encode("utf-8")
    return resp


def _client(session, token_url=""):
    return QtiClient("https://qti.example.org/api/", token_url=token_url,
                     client_id="id", client_secret="secret", session=session)


class TestRequests:
    def test_create_posts_xml_payload(self):
        session = MagicMock()
        session.request.return_value = _response(201, {"identifier": "q1"})
        assert _client(session).create("item", "<x/>") == {"identifier": "q1"}
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url == "https://qti.example.org/api/assessment-items"
        assert session.request.call_args.kwargs["json"] == {"format": "xml", "xml": "<x/>"}

    def test_update_quotes_identifier(self):
        session = MagicMock()
        session.request.return_value = _response(200, {})
        _client(session).update("stimulus", "a b", "<x/>")
        assert session.request.call_args.args == ("PUT", "https://qti.example.org/api/stimuli/a%20b")

    def test_not_found(self):
        session = MagicMock()
        session.request.return_value = _response(404, text="missing")
        with pytest.raises(QtiNotFoundError) as exc:
            _client(session).get("test", "t1")
        assert exc.value.status == 404

    def test_server_error(self):
        session = MagicMock()
        session.request.return_value = _response(500, text="boom")
        with pytest.raises(QtiApiError) as exc:
            _client(session).delete("item", "q1")
        assert exc.value.status == 500
        assert exc.value.body == "boom"
        assert not isinstance(exc.value, QtiNotFoundError)

    def test_connection_error(self):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(QtiApiError):
            _client(session).get("item", "q1")

    def test_empty_body_returns_none(self):
        session = MagicMock()
        session.request.return_value = _response(204)
        assert _client(session).delete("item", "q1") is None

    def test_exists(self):
        session = MagicMock()
        session.request.side_effect = [_response(200, {}), _response(404)]
        client = _client(session)
        assert client.exists("item", "q1") is True
        assert client.exists("item", "q2") is False

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            _client(MagicMock()).get("rubric", "x")


class TestValidateXml:
    def test_dict_success(self):
        session = MagicMock()
        session.request.return_value = _response(200, {"success": True})
        assert _client(session).validate_xml("item", "<x/>") is True
        assert session.request.call_args.kwargs["json"] == {"schema": "item", "xml": "<x/>"}

    def test_dict_string_failure(self):
        session = MagicMock()
        session.request.return_value = _response(200, {"success": "false"})
        assert _client(session).validate_xml("item", "<x/>") is False

    def test_bare_true_text(self):
        session = MagicMock()
        session.request.return_value = _response(200, text="true")
        assert _client(session).validate_xml("test", "<x/>") is True


class TestAuth:
    def test_no_token_url_means_no_auth_header(self):
        session = MagicMock()
        session.request.return_value = _response(200, {})
        _client(session).get("item", "q1")
        assert "Authorization" not in session.request.call_args.kwargs["headers"]
        session.post.assert_not_called()

    def test_token_fetched_once_and_cached(self):
        session = MagicMock()
        session.post.return_value = _response(200, {"access_token": "tok", "expires_in": 3600})
        session.request.return_value = _response(200, {})
        client = _client(session, token_url="https://auth.example.org/token")
        client.get("item", "q1")
        client.get("item", "q2")
        assert session.post.call_count == 1
        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"
        assert session.post.call_args.kwargs["data"]["grant_type"] == "client_credentials"

    def test_token_rejected(self):
        session = MagicMock()
        session.post.return_value = _response(401, text="bad client")
        with pytest.raises(QtiApiError) as exc:
            _client(session, token_url="https://auth.example.org/token").get("item", "q1")
        assert exc.value.status == 401
        session.request.assert_not_called()

    def test_concurrent_callers_share_one_token_request(self):
        session = MagicMock()

        def slow_post(*args, **kwargs):
            time.sleep(0.05)
            return _response(200, {"access_token": "tok", "expires_in": 3600})

        session.post.side_effect = slow_post
        client = _client(session, token_url="https://auth.example.org/token")
        start = threading.Barrier(8, timeout=5)
        tokens = []

        def worker():
            start.wait()
            tokens.append(client._access_token())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert tokens == ["tok"] * 8
        assert session.post.call_count == 1
