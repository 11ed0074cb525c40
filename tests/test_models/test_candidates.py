"""Tests for candidate, decision, and question models."""

import pytest
from pydantic import ValidationError

from decision_hub.models.candidates import CandidateNotes, CandidateStatus, ReviewAction
from decision_hub.models.decisions import DecisionCreate
from decision_hub.models.rag import AskRequest


@pytest.mark.parametrize(
    ("action", "status"),
    [
        (ReviewAction.CONFIRM, CandidateStatus.CONFIRMED),
        (ReviewAction.EDIT, CandidateStatus.EDITED),
        (ReviewAction.DISMISS, CandidateStatus.DISMISSED),
    ],
)
def test_action_target_status(action: ReviewAction, status: CandidateStatus):
    assert action.target_status == status


def test_notes_keep_unknown_keys():
    notes = CandidateNotes.model_validate({"area": "design", "model": "gpt-4o-mini"})

    assert notes.area == "design"
    assert notes.model_dump(exclude_none=True) == {"area": "design", "model": "gpt-4o-mini"}


@pytest.mark.parametrize(
    ("dm_channel_id", "dm_message_ts", "expected"),
    [("D1", "1.2", True), ("D1", None, False), (None, "1.2", False)],
)
def test_notes_dm_reference(dm_channel_id: str | None, dm_message_ts: str | None, expected: bool):
    notes = CandidateNotes(dm_channel_id=dm_channel_id, dm_message_ts=dm_message_ts)
    assert notes.has_dm_reference is expected


@pytest.mark.parametrize(("limit", "expected"), [(None, None), (0, 1), (5, 5), (500, 20)])
def test_ask_limit_clamped(limit: int | None, expected: int | None):
    assert AskRequest(question="Why?", limit=limit).limit == expected


def test_ask_requires_question():
    with pytest.raises(ValidationError):
        AskRequest(question="")


@pytest.mark.parametrize("confidence", [-0.1, 1.1])
def test_decision_confidence_bounded(confidence: float):
    with pytest.raises(ValidationError):
        DecisionCreate(agent_id="agent", action_taken="Ship it", confidence=confidence)
