"""Tests for classification, extraction, and candidate creation."""

import json
from datetime import timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from decision_hub.db.models import ExtractionCandidate, Organization
from decision_hub.errors import UpstreamError
from decision_hub.extraction.engine import classify, extract, format_thread_text, process
from decision_hub.llm.client import LLMResult
from decision_hub.llm.config import build_llm_config
from decision_hub.llm.usage import TokenUsage
from decision_hub.models.candidates import CandidateStatus
from decision_hub.models.slack import ThreadMessage

from conftest import CHANNEL_ID, CHANNEL_NAME

THREAD_TS = "1700000000.000100"


def _result(payload: dict | str) -> LLMResult:
    """Wrap a model reply in an LLMResult."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return LLMResult(text=text, model="gpt-4o-mini", usage=TokenUsage(0, 0, 0, 0.0))


def _replies(confidence: float, is_decision: bool = True) -> list[LLMResult]:
    """Classification reply followed by an extraction reply."""
    return [
        _result({"is_decision": is_decision, "confidence": confidence}),
        _result(
            {
                "title": "Move billing to Stripe",
                "rationale": "Lower fees",
                "participants": ["Ana", "Ben"],
                "alternatives": [{"option": "Adyen", "reason_rejected": "Too complex"}],
            }
        ),
    ]


def _thread() -> list[ThreadMessage]:
    return [
        ThreadMessage(message_ts="1700000002.000000", user_name="Ben", text="Fees are lower"),
        ThreadMessage(message_ts=THREAD_TS, user_name="Ana", text="Should we move to Stripe?"),
        ThreadMessage(message_ts="1700000003.000000", user_name=None, text="Agreed, let's do it"),
    ]


async def _candidate_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(ExtractionCandidate))


# -- classify / extract tests --


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_classify_malformed_json_is_negative(mock_chat: AsyncMock):
    mock_chat.return_value = _result("definitely a decision!")
    classification = await classify("text", build_llm_config("openai"))
    assert classification.is_decision is False
    assert classification.confidence == 0.0


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_classify_upstream_failure_is_negative(mock_chat: AsyncMock):
    mock_chat.side_effect = UpstreamError("boom")
    classification = await classify("text", build_llm_config("openai"))
    assert classification.is_decision is False


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_classify_accepts_fenced_json(mock_chat: AsyncMock):
    mock_chat.return_value = _result('```json\n{"is_decision": true, "confidence": 0.8}\n```')
    classification = await classify("text", build_llm_config("openai"))
    assert classification.is_decision is True
    assert classification.confidence == 0.8


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_extract_malformed_json_is_untitled(mock_chat: AsyncMock):
    mock_chat.return_value = _result("{not json")
    extraction = await extract("text", build_llm_config("openai"))
    assert extraction.title == "Untitled decision"
    assert extraction.participants == []
    assert extraction.alternatives == []


def test_format_thread_text_uses_unknown_for_missing_author():
    text = format_thread_text(_thread())
    assert text.splitlines() == [
        "Ben: Fees are lower",
        "Ana: Should we move to Stripe?",
        "Unknown: Agreed, let's do it",
    ]


# -- process gating tests --


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_process_below_threshold_creates_nothing(mock_chat: AsyncMock, session, org):
    """Confidence 0.59 is not above the 0.6 threshold: no candidate, no extraction call."""
    mock_chat.side_effect = _replies(0.59)
    candidate = await process(session, org, _thread(), CHANNEL_NAME, thread_ts=THREAD_TS, channel_id=CHANNEL_ID)
    assert candidate is None
    assert mock_chat.await_count == 1
    assert await _candidate_count(session) == 0


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_process_at_threshold_creates_nothing(mock_chat: AsyncMock, session, org):
    """The threshold itself does not qualify."""
    mock_chat.side_effect = _replies(0.6)
    assert await process(session, org, _thread(), CHANNEL_NAME, thread_ts=THREAD_TS) is None
    assert await _candidate_count(session) == 0


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_process_above_threshold_creates_pending_candidate(mock_chat: AsyncMock, session, org):
    mock_chat.side_effect = _replies(0.61)
    candidate = await process(session, org, _thread(), CHANNEL_NAME, thread_ts=THREAD_TS, channel_id=CHANNEL_ID)

    assert candidate is not None
    assert candidate.status == CandidateStatus.PENDING
    assert candidate.title == "Move billing to Stripe"
    assert candidate.confidence == 0.61
    assert candidate.source_thread_ts == THREAD_TS
    assert candidate.source_message_ids == [m.message_ts for m in _thread()]
    assert candidate.alternatives == [{"option": "Adyen", "reason_rejected": "Too complex"}]
    assert candidate.notes.channel_id == CHANNEL_ID
    assert candidate.notes.message_count == 3
    # Earliest message, not the first one in the list
    assert candidate.source_timestamp.replace(tzinfo=timezone.utc).timestamp() == pytest.approx(float(THREAD_TS))


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_process_not_a_decision_creates_nothing(mock_chat: AsyncMock, session, org):
    mock_chat.side_effect = _replies(0.95, is_decision=False)
    assert await process(session, org, _thread(), CHANNEL_NAME, thread_ts=THREAD_TS) is None


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_process_duplicate_thread_is_suppressed(mock_chat: AsyncMock, session, org):
    """A second positive run on the same thread hits the live-candidate index and returns None."""
    mock_chat.side_effect = _replies(0.9) + _replies(0.9)
    first = await process(session, org, _thread(), CHANNEL_NAME, thread_ts=THREAD_TS)
    second = await process(session, org, _thread(), CHANNEL_NAME, thread_ts=THREAD_TS)

    assert first is not None
    assert second is None
    assert await _candidate_count(session) == 1


@patch("decision_hub.extraction.engine.chat_completion", new_callable=AsyncMock)
async def test_process_honors_tenant_threshold_override(mock_chat: AsyncMock, session, org):
    organization = await session.get(Organization, org)
    organization.policy = {"extraction_confidence_threshold": 0.9}
    await session.commit()

    mock_chat.side_effect = _replies(0.85)
    assert await process(session, org, _thread(), CHANNEL_NAME, thread_ts=THREAD_TS) is None
