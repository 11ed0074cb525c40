"""Slack request signature verification as FastAPI dependencies.

``SignatureVerifier`` checks ``v0=HMAC-SHA256(secret, "v0:{ts}:{body}")`` with a
constant-time compare and rejects timestamps older than five minutes.
"""

import json
from urllib.parse import parse_qs

from fastapi import Request
from slack_sdk.signature import SignatureVerifier

from decision_hub.config import get_settings
from decision_hub.errors import InvalidArgumentError, SignatureError


def _verify(body: bytes, request: Request) -> None:
    settings = get_settings()
    timestamp = request.headers.get("X-Slack-Request-Timestamp", "")
    signature = request.headers.get("X-Slack-Signature", "")

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SignatureError("Invalid Slack signature") from exc

    verifier = SignatureVerifier(signing_secret=settings.slack_signing_secret)
    if not verifier.is_valid(body=text, timestamp=timestamp, signature=signature):
        raise SignatureError("Invalid Slack signature")


async def verify_slack_request(request: Request) -> dict:
    """Verify an Events API request and return its parsed JSON payload.

    Reads the raw body FIRST so verification uses the exact bytes Slack
    signed. ``url_verification`` handshakes are returned unverified.

    Raises:
        InvalidArgumentError: If the body is not UTF-8 JSON.
        SignatureError: If the signature is invalid or stale.
    """
    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError as exc:
        # JSONDecodeError, or UnicodeDecodeError for bytes that are not UTF-8
        raise InvalidArgumentError("Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidArgumentError("Expected a JSON object")

    if payload.get("type") == "url_verification":
        return payload

    _verify(body, request)
    return payload


async def verify_slack_form(request: Request) -> dict[str, str]:
    """Verify a form-encoded request (interactions, slash commands) and return its fields."""
    body = await request.body()
    _verify(body, request)
    return {key: values[0] for key, values in parse_qs(body.decode("utf-8")).items()}
