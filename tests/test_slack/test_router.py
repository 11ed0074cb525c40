"""Integration tests for the /slack/* endpoints."""

import hashlib
import hmac
import json
import time
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import urlencode

import pytest
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from decision_hub.app import app
from decision_hub.db.engine import get_session
from decision_hub.errors import NotFoundError

TEST_SIGNING_SECRET = "test_signing_secret_1234"


def _mock_settings() -> MagicMock:
    """Create a mock Settings for router tests."""
    settings = MagicMock()
    settings.slack_signing_secret = TEST_SIGNING_SECRET
    return settings


def _sign_request(body: bytes, secret: str, timestamp: int | None = None) -> tuple[str, str]:
    """Generate Slack-compatible signature headers."""
    ts = str(timestamp if timestamp is not None else int(time.time()))
    sig_basestring = f"v0:{ts}:{body.decode()}"
    signature = "v0=" + hmac.new(secret.encode(), sig_basestring.encode(), hashlib.sha256).hexdigest()
    return ts, signature


def _post_signed(
    client: TestClient,
    path: str,
    body: bytes,
    content_type: str,
    *,
    signing_secret: str = TEST_SIGNING_SECRET,
    timestamp: int | None = None,
    extra_headers: dict | None = None,
):
    """Send a signed POST to a Slack endpoint."""
    ts, signature = _sign_request(body, signing_secret, timestamp)
    headers = {
        "X-Slack-Request-Timestamp": ts,
        "X-Slack-Signature": signature,
        "Content-Type": content_type,
    }
    if extra_headers:
        headers.update(extra_headers)
    return client.post(path, content=body, headers=headers)


def _post_event(client: TestClient, payload: dict, **kwargs):
    return _post_signed(client, "/slack/events", json.dumps(payload).encode(), "application/json", **kwargs)


def _post_form(client: TestClient, path: str, fields: dict, **kwargs):
    return _post_signed(
        client, path, urlencode(fields).encode(), "application/x-www-form-urlencoded", **kwargs
    )


def _post_raw(client: TestClient, path: str, body: bytes, content_type: str):
    """POST bytes that cannot be signed as text, with well-formed but wrong headers."""
    headers = {
        "X-Slack-Request-Timestamp": str(int(time.time())),
        "X-Slack-Signature": "v0=" + "0" * 64,
        "Content-Type": content_type,
    }
    return client.post(path, content=body, headers=headers)


@pytest.fixture
def api(client: TestClient) -> TestClient:
    async def _fake_session():
        yield MagicMock()

    app.dependency_overrides[get_session] = _fake_session
    return client


@pytest.fixture(autouse=True)
def mock_verification_settings():
    with patch("decision_hub.slack.verification.get_settings") as m:
        m.return_value = _mock_settings()
        yield m


# -- /slack/events tests --


def test_url_verification_challenge(api: TestClient):
    """The handshake echoes the challenge, even unsigned."""
    body = json.dumps({"type": "url_verification", "challenge": "abc"}).encode()
    response = api.post("/slack/events", content=body, headers={"Content-Type": "application/json"})
    assert response.status_code == 200
    assert response.json() == {"challenge": "abc"}


def test_invalid_signature_returns_401(api: TestClient):
    payload = {"type": "event_callback", "event": {"type": "message"}}
    response = _post_event(api, payload, signing_secret="wrong-secret")
    assert response.status_code == 401
    assert response.json()["error"] == "InvalidSignature"


def test_stale_timestamp_returns_401(api: TestClient):
    """Correctly signed but older than five minutes."""
    payload = {"type": "event_callback", "event": {"type": "message"}}
    response = _post_event(api, payload, timestamp=int(time.time()) - 600)
    assert response.status_code == 401


def test_invalid_json_returns_400(api: TestClient):
    response = _post_signed(api, "/slack/events", b"{not json", "application/json")
    assert response.status_code == 400


def test_non_utf8_event_body_returns_400(api: TestClient):
    response = _post_raw(api, "/slack/events", b"\x80\x81{\"type\": \"event_callback\"}", "application/json")
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_non_object_event_body_returns_400(api: TestClient):
    response = _post_signed(api, "/slack/events", b"[1, 2]", "application/json")
    assert response.status_code == 400


@patch("decision_hub.slack.handlers.ingest_message", new_callable=AsyncMock)
def test_valid_message_dispatched(mock_ingest: AsyncMock, api: TestClient):
    payload = {
        "type": "event_callback",
        "team_id": "T1",
        "event": {"type": "message", "user": "U1", "channel": "C1", "ts": "1.1", "text": "We decided"},
    }
    response = _post_event(api, payload)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    mock_ingest.assert_awaited_once()
    assert mock_ingest.await_args.args[1] == "T1"


@patch("decision_hub.slack.handlers.ingest_message", new_callable=AsyncMock)
def test_retry_acknowledged_without_processing(mock_ingest: AsyncMock, api: TestClient):
    payload = {
        "type": "event_callback",
        "team_id": "T1",
        "event": {"type": "message", "user": "U1", "channel": "C1", "ts": "1.1", "text": "hi"},
    }
    response = _post_event(api, payload, extra_headers={"X-Slack-Retry-Num": "1"})

    assert response.status_code == 200
    mock_ingest.assert_not_awaited()


# -- /slack/interactions tests --


@patch("decision_hub.slack.router.handle_interaction", new_callable=AsyncMock)
def test_interaction_payload_parsed(mock_handle: AsyncMock, api: TestClient):
    mock_handle.return_value = JSONResponse({})
    payload = {"type": "block_actions", "actions": [{"action_id": "decision_confirm", "value": "c1"}]}

    response = _post_form(api, "/slack/interactions", {"payload": json.dumps(payload)})

    assert response.status_code == 200
    assert mock_handle.await_args.args[1] == payload


def test_interaction_missing_payload_returns_400(api: TestClient):
    response = _post_form(api, "/slack/interactions", {"other": "x"})
    assert response.status_code == 400


def test_interaction_bad_signature_returns_401(api: TestClient):
    response = _post_form(api, "/slack/interactions", {"payload": "{}"}, signing_secret="nope")
    assert response.status_code == 401


def test_non_utf8_interaction_body_returns_401(api: TestClient):
    response = _post_raw(api, "/slack/interactions", b"payload=\xff\xfe", "application/x-www-form-urlencoded")
    assert response.status_code == 401
    assert response.json()["error"] == "InvalidSignature"


# -- /slack/command tests --


@patch("decision_hub.slack.router.handle_context_command", new_callable=AsyncMock)
def test_command_form_forwarded(mock_handle: AsyncMock, api: TestClient):
    mock_handle.return_value = JSONResponse({"response_type": "ephemeral", "text": "Thinking"})

    response = _post_form(api, "/slack/command", {"command": "/context", "text": "why?", "team_id": "T1"})

    assert response.status_code == 200
    form = mock_handle.await_args.args[1]
    assert form["text"] == "why?"
    assert form["team_id"] == "T1"


# -- /slack/backfill tests --


@patch("decision_hub.slack.router.run_backfill", new_callable=AsyncMock)
@patch("decision_hub.slack.router.start_backfill", new_callable=AsyncMock)
def test_backfill_started(mock_start: AsyncMock, mock_run: AsyncMock, api: TestClient):
    mock_start.return_value = {"status": "started", "channels": 2, "months": 6}

    response = api.post("/slack/backfill", json={"months": 6}, headers={"X-Organization-Id": "org-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "started", "channels": 2, "months": 6}
    mock_run.assert_awaited_once_with("org-1", 6)


@patch("decision_hub.slack.router.run_backfill", new_callable=AsyncMock)
@patch("decision_hub.slack.router.start_backfill", new_callable=AsyncMock)
def test_backfill_without_workspace_not_started(mock_start: AsyncMock, mock_run: AsyncMock, api: TestClient):
    mock_start.side_effect = NotFoundError("No active Slack workspace found")

    response = api.post("/slack/backfill", json={"months": 3}, headers={"X-Organization-Id": "org-1"})

    assert response.status_code == 404
    mock_run.assert_not_awaited()
