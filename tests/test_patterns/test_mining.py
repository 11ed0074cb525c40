"""Tests for pattern discovery rules and idempotent regeneration."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from decision_hub.db.models import Decision, Pattern
from decision_hub.models.patterns import PatternType
from decision_hub.patterns.mining import (
    agent_success_rates,
    confidence_correlations,
    context_cooccurrence,
    discover,
    list_patterns,
    pattern_id,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _make_decision(i: int, **overrides: object) -> Decision:
    """Build an unsaved decision; ``i`` spaces out ids and timestamps."""
    values = {
        "id": f"dec-{i:03d}",
        "organization_id": "org-1",
        "agent_id": "slack-extraction",
        "timestamp": BASE_TIME + timedelta(hours=i),
        "action_taken": f"Decision {i}",
        "confidence": 0.9,
        "context_snapshot": {},
        "outcome": None,
    }
    values.update(overrides)
    return Decision(**values)


async def _pattern_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(Pattern))


# -- rule tests --


def test_agent_success_rate_emitted_for_strong_agent():
    decisions = [_make_decision(i) for i in range(5)]
    findings = agent_success_rates(decisions, min_sample_size=5, confidence_threshold=0.6)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.pattern_type == PatternType.SUCCESS_FACTOR
    assert finding.name == "slack-extraction success pattern"
    assert finding.confidence == pytest.approx(1.0)
    assert finding.outcomes[0].description == "High success rate"


def test_agent_success_rate_counts_failure_outcomes():
    decisions = [_make_decision(i, outcome="Launch failed") for i in range(5)]
    findings = agent_success_rates(decisions, min_sample_size=5, confidence_threshold=0.6)

    assert findings[0].outcomes[0].description == "Low success rate"
    assert findings[0].outcomes[0].probability == 0.0


def test_agent_success_rate_ignores_middling_and_small_agents():
    middling = [_make_decision(i, confidence=0.9 if i % 2 else 0.2) for i in range(6)]
    small = [_make_decision(10 + i, agent_id="rare") for i in range(4)]
    assert agent_success_rates(middling + small, min_sample_size=5, confidence_threshold=0.6) == []


def test_low_confidence_override_correlation():
    decisions = [_make_decision(i, confidence=0.3, outcome="override by manager" if i < 2 else None) for i in range(5)]
    findings = confidence_correlations(decisions, min_sample_size=5)

    assert [f.name for f in findings] == ["Low confidence decisions need review"]
    assert findings[0].confidence == pytest.approx(0.4)


def test_high_confidence_success_correlation():
    decisions = [_make_decision(i, confidence=0.85) for i in range(5)]
    findings = confidence_correlations(decisions, min_sample_size=5)
    assert [f.name for f in findings] == ["High confidence decisions succeed"]


def test_context_cooccurrence_requires_count_and_share():
    common = [_make_decision(i, context_snapshot={"area": "product", "urgent": True}) for i in range(5)]
    rare = [_make_decision(10 + i, context_snapshot={"area": f"x{i}", "tags": ["a"]}) for i in range(45)]
    findings = context_cooccurrence(common + rare, min_sample_size=5)

    names = {f.name for f in findings}
    assert names == {"Common context: area=product", "Common context: urgent=true"}
    assert all(f.confidence == pytest.approx(0.1) for f in findings)


# -- discover tests --


async def test_discover_twice_is_stable(session, org):
    """Regeneration over the same data upserts: same ids, same row count."""
    for i in range(6):
        session.add(_make_decision(i, context_snapshot={"channel": "eng"}))
    await session.commit()

    first = await discover(session, org)
    count_after_first = await _pattern_count(session)
    second = await discover(session, org)

    assert first.analyzed_decisions == 6
    assert count_after_first == len(first.patterns) > 0
    assert await _pattern_count(session) == count_after_first
    assert sorted(p.id for p in first.patterns) == sorted(p.id for p in second.patterns)


async def test_discover_results_ranked_by_confidence(session, org):
    for i in range(6):
        session.add(_make_decision(i, context_snapshot={"channel": "eng"}))
    await session.commit()

    result = await discover(session, org)

    confidences = [p.confidence for p in result.patterns]
    assert confidences == sorted(confidences, reverse=True)


async def test_list_patterns_filters_type_and_active(session, org):
    for i in range(6):
        session.add(_make_decision(i))
    await session.commit()
    await discover(session, org)

    inactive = await session.get(Pattern, pattern_id(org, PatternType.SUCCESS_FACTOR, "slack-extraction success pattern"))
    inactive.is_active = False
    await session.commit()

    assert await list_patterns(session, org, "success_factor") == []
    assert len(await list_patterns(session, org, "success_factor", active_only=False)) == 1


def test_pattern_id_is_deterministic():
    a = pattern_id("org-1", PatternType.CORRELATION, "x")
    assert a == pattern_id("org-1", PatternType.CORRELATION, "x")
    assert a != pattern_id("org-2", PatternType.CORRELATION, "x")
