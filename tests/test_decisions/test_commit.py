"""Tests for decision commit, direct logging, and embedding backfill."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from decision_hub.db.models import Decision, ExtractionCandidate
from decision_hub.decisions.commit import (
    backfill_embeddings,
    build_decision_text,
    effective_fields,
    log_decision,
    slack_permalink,
)
from decision_hub.errors import UpstreamError
from decision_hub.models.candidates import Alternative, CandidateEdits
from decision_hub.models.decisions import DecisionCreate

EMBEDDING = [0.5] * 1536


def _make_payload(**overrides: object) -> DecisionCreate:
    """Build a DecisionCreate with overrides."""
    values = {
        "agent_id": "pricing-bot",
        "action_taken": "Raise Pro tier to $20",
        "confidence": 0.75,
        "context_snapshot": {"region": "EU", "alternatives": [{"option": "$25"}]},
        "reasoning": "Competitor parity",
        "outcome": "Revenue up",
    }
    values.update(overrides)
    return DecisionCreate(**values)


# -- build_decision_text tests --


def test_decision_text_sections():
    text = build_decision_text(
        "Adopt Kafka",
        {"team": "data"},
        "Throughput",
        [{"option": "RabbitMQ", "reason_rejected": "Scale"}, {"option": "SQS"}, {"bad": True}],
        "Shipped",
    )
    assert text.splitlines() == [
        "Action: Adopt Kafka",
        'Context: {"team": "data"}',
        "Rationale: Throughput",
        "Alternatives considered: RabbitMQ (rejected: Scale); SQS",
        "Outcome: Shipped",
    ]


def test_decision_text_truncates_context():
    text = build_decision_text("X", {"blob": "y" * 2000})
    context_line = text.splitlines()[1]
    assert len(context_line) == len("Context: ") + 500


def test_slack_permalink():
    assert slack_permalink("C1", "1700000000.000100") == "https://slack.com/archives/C1/p1700000000000100"
    assert slack_permalink(None, "1.1") is None


# -- effective_fields tests --


def _make_candidate() -> ExtractionCandidate:
    return ExtractionCandidate(
        title="Adopt Kafka",
        rationale="Throughput",
        participants=["Ana", "Ben"],
        alternatives=[{"option": "SQS"}],
    )


def test_effective_fields_without_edits():
    fields = effective_fields(_make_candidate())
    assert fields == {
        "title": "Adopt Kafka",
        "rationale": "Throughput",
        "participants": ["Ana", "Ben"],
        "alternatives": [{"option": "SQS"}],
    }


def test_effective_fields_omitted_edits_keep_values():
    fields = effective_fields(_make_candidate(), CandidateEdits(rationale="Cost"))
    assert fields["title"] == "Adopt Kafka"
    assert fields["rationale"] == "Cost"
    assert fields["participants"] == ["Ana", "Ben"]


def test_effective_fields_empty_edits_clear_values():
    candidate = _make_candidate()
    fields = effective_fields(candidate, CandidateEdits(title="", rationale="", participants=[], alternatives=[]))

    assert fields == {"title": "Adopt Kafka", "rationale": "", "participants": [], "alternatives": []}
    assert candidate.rationale == "Throughput"


def test_effective_fields_alternatives_dumped():
    edits = CandidateEdits(alternatives=[Alternative(option="Pulsar", reason_rejected="Ops cost")])
    fields = effective_fields(_make_candidate(), edits)
    assert fields["alternatives"][0]["option"] == "Pulsar"
    assert fields["alternatives"][0]["reason_rejected"] == "Ops cost"


# -- log_decision / backfill tests --


@patch("decision_hub.decisions.commit.embed_text", new_callable=AsyncMock)
async def test_log_decision_stores_embedding(mock_embed: AsyncMock, session, org):
    mock_embed.return_value = EMBEDDING

    decision = await log_decision(session, org, _make_payload())

    assert decision.has_embedding
    assert "Alternatives considered: $25" in mock_embed.await_args.args[0]


@patch("decision_hub.decisions.commit.embed_text", new_callable=AsyncMock)
async def test_embedding_failure_then_backfill_touches_only_embedding(mock_embed: AsyncMock, session, org):
    """Write now, enrich later: a failed embedding is filled in without changing other fields."""
    mock_embed.side_effect = UpstreamError("provider down")
    decision = await log_decision(session, org, _make_payload())
    assert decision.embedding is None

    before = {
        column: getattr(decision, column)
        for column in ("agent_id", "action_taken", "confidence", "context_snapshot", "reasoning", "outcome", "sources")
    }

    mock_embed.side_effect = None
    mock_embed.return_value = EMBEDDING
    result = await backfill_embeddings(session)

    assert (result.scanned, result.updated, result.failed) == (1, 1, 0)
    stored = await session.scalar(select(Decision).execution_options(populate_existing=True))
    assert [float(v) for v in stored.embedding] == pytest.approx(EMBEDDING)
    for column, value in before.items():
        assert getattr(stored, column) == value


@patch("decision_hub.decisions.commit.embed_text", new_callable=AsyncMock)
async def test_backfill_counts_failures(mock_embed: AsyncMock, session, org):
    mock_embed.side_effect = UpstreamError("down")
    await log_decision(session, org, _make_payload())
    await log_decision(session, org, _make_payload(action_taken="Second"))

    result = await backfill_embeddings(session)

    assert (result.scanned, result.updated, result.failed) == (2, 0, 2)


@patch("decision_hub.decisions.commit.embed_text", new_callable=AsyncMock)
async def test_backfill_scoped_to_organization(mock_embed: AsyncMock, session, org):
    mock_embed.side_effect = UpstreamError("down")
    await log_decision(session, org, _make_payload())

    result = await backfill_embeddings(session, organization_id="org-other")

    assert result.scanned == 0
