"""Statistical pattern discovery over the decision store.

Three passes over the most recent decisions:

- success rate per agent (``success_factor``)
- confidence cohort vs. override / success outcome (``correlation``)
- frequently co-occurring scalar context values (``correlation``)

Patterns are derived data. Ids are ``uuid5`` over (organization, type, name)
so re-running discovery on the same data rewrites the same rows.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.config import get_settings
from decision_hub.db.engine import utcnow
from decision_hub.db.models import Decision, Pattern
from decision_hub.errors import InvalidArgumentError
from decision_hub.models.patterns import (
    DiscoveryResult,
    PatternCondition,
    PatternOutcome,
    PatternRead,
    PatternType,
)
from decision_hub.policy import resolve_policy

logger = logging.getLogger(__name__)

PATTERN_NAMESPACE = uuid.UUID("6f1c5a2e-8d4b-4f7a-9c3e-2b1d0e9f8a71")
MAX_DECISION_IDS = 10


@dataclass
class Finding:
    """A pattern found by one pass, before it gets an id and a tenant."""

    name: str
    description: str
    pattern_type: PatternType
    conditions: list[PatternCondition]
    outcomes: list[PatternOutcome]
    confidence: float
    sample_size: int
    decision_ids: list[str] = field(default_factory=list)


def pattern_id(organization_id: str, pattern_type: PatternType, name: str) -> str:
    return str(uuid.uuid5(PATTERN_NAMESPACE, f"{organization_id}:{pattern_type.value}:{name}"))


def _outcome_mentions(decision: Decision, *words: str) -> bool:
    outcome = (decision.outcome or "").lower()
    return any(word in outcome for word in words)


def agent_success_rates(
    decisions: list[Decision], min_sample_size: int, confidence_threshold: float
) -> list[Finding]:
    """Agents whose success rate is far from a coin flip in either direction."""
    success_confidence = get_settings().pattern_success_confidence
    by_agent: dict[str, list[Decision]] = defaultdict(list)
    for decision in decisions:
        by_agent[decision.agent_id].append(decision)

    findings = []
    for agent_id, group in sorted(by_agent.items()):
        if len(group) < min_sample_size:
            continue
        successful = sum(
            1 for d in group if d.confidence >= success_confidence and not _outcome_mentions(d, "fail")
        )
        rate = successful / len(group)
        if not (rate >= confidence_threshold or rate <= 1 - confidence_threshold):
            continue
        findings.append(
            Finding(
                name=f"{agent_id} success pattern",
                description=f"Agent {agent_id} has {rate * 100:.0f}% success rate",
                pattern_type=PatternType.SUCCESS_FACTOR,
                conditions=[PatternCondition(field="agent_id", operator="equals", value=agent_id)],
                outcomes=[
                    PatternOutcome(
                        description="High success rate" if rate > 0.5 else "Low success rate", probability=rate
                    )
                ],
                confidence=abs(rate - 0.5) * 2,
                sample_size=len(group),
                decision_ids=[d.id for d in group[:MAX_DECISION_IDS]],
            )
        )
    return findings


def confidence_correlations(decisions: list[Decision], min_sample_size: int) -> list[Finding]:
    """Low-confidence decisions that get overridden; high-confidence ones that succeed."""
    settings = get_settings()
    low = [d for d in decisions if d.confidence < settings.pattern_low_confidence]
    high = [d for d in decisions if d.confidence >= settings.pattern_high_confidence]
    findings = []

    if low and len(low) >= min_sample_size:
        override_rate = sum(1 for d in low if _outcome_mentions(d, "override", "corrected")) / len(low)
        if override_rate > settings.pattern_override_rate_bar:
            findings.append(
                Finding(
                    name="Low confidence decisions need review",
                    description=f"{override_rate * 100:.0f}% of low-confidence decisions get overridden",
                    pattern_type=PatternType.CORRELATION,
                    conditions=[
                        PatternCondition(
                            field="confidence", operator="less_than", value=settings.pattern_low_confidence
                        )
                    ],
                    outcomes=[PatternOutcome(description="Higher override rate", probability=override_rate)],
                    confidence=override_rate,
                    sample_size=len(low),
                    decision_ids=[d.id for d in low[:MAX_DECISION_IDS]],
                )
            )

    if high and len(high) >= min_sample_size:
        success_rate = sum(1 for d in high if not _outcome_mentions(d, "fail", "override")) / len(high)
        if success_rate > settings.pattern_success_rate_bar:
            findings.append(
                Finding(
                    name="High confidence decisions succeed",
                    description=f"{success_rate * 100:.0f}% of high-confidence decisions succeed",
                    pattern_type=PatternType.CORRELATION,
                    conditions=[
                        PatternCondition(
                            field="confidence", operator="greater_than", value=settings.pattern_high_confidence
                        )
                    ],
                    outcomes=[PatternOutcome(description="Higher success rate", probability=success_rate)],
                    confidence=success_rate,
                    sample_size=len(high),
                    decision_ids=[d.id for d in high[:MAX_DECISION_IDS]],
                )
            )
    return findings


def context_cooccurrence(decisions: list[Decision], min_sample_size: int) -> list[Finding]:
    """Scalar ``context_snapshot`` values shared by many decisions."""
    if not decisions:
        return []
    min_share = get_settings().pattern_context_min_share
    tally: dict[tuple[str, str], list[str]] = defaultdict(list)
    for decision in decisions:
        for key, value in (decision.context_snapshot or {}).items():
            # bool before str(): JSON true and "True" are the same value here
            if isinstance(value, bool):
                tally[(key, str(value).lower())].append(decision.id)
            elif isinstance(value, (str, int, float)):
                tally[(key, str(value))].append(decision.id)

    findings = []
    for (key, value), ids in sorted(tally.items()):
        share = len(ids) / len(decisions)
        if len(ids) < min_sample_size or share < min_share:
            continue
        findings.append(
            Finding(
                name=f"Common context: {key}={value}",
                description=f"{len(ids)} decisions ({share * 100:.0f}%) have {key}={value}",
                pattern_type=PatternType.CORRELATION,
                conditions=[PatternCondition(field=f"context_snapshot.{key}", operator="equals", value=value)],
                outcomes=[PatternOutcome(description="Frequently occurring context", probability=share)],
                confidence=share,
                sample_size=len(ids),
                decision_ids=ids[:MAX_DECISION_IDS],
            )
        )
    return findings


async def discover(
    session: AsyncSession,
    organization_id: str,
    min_sample_size: int | None = None,
    confidence_threshold: float | None = None,
) -> DiscoveryResult:
    """Mine the tenant's recent decisions and upsert the patterns found.

    Omitted parameters fall back to the tenant policy (5 and 0.6).
    """
    policy = await resolve_policy(session, organization_id)
    min_sample_size = min_sample_size or policy.pattern_min_sample_size
    if confidence_threshold is None:
        confidence_threshold = policy.pattern_confidence_threshold

    decisions = list(
        (
            await session.scalars(
                select(Decision)
                .where(Decision.organization_id == organization_id)
                .order_by(Decision.timestamp.desc(), Decision.id)
                .limit(get_settings().pattern_window)
            )
        ).all()
    )

    findings = [
        *agent_success_rates(decisions, min_sample_size, confidence_threshold),
        *confidence_correlations(decisions, min_sample_size),
        *context_cooccurrence(decisions, min_sample_size),
    ]

    now = utcnow()
    for finding in findings:
        await session.merge(
            Pattern(
                id=pattern_id(organization_id, finding.pattern_type, finding.name),
                organization_id=organization_id,
                name=finding.name,
                description=finding.description,
                pattern_type=finding.pattern_type,
                conditions=[c.model_dump(mode="json") for c in finding.conditions],
                outcomes=[o.model_dump() for o in finding.outcomes],
                confidence=finding.confidence,
                sample_size=finding.sample_size,
                decision_ids=finding.decision_ids,
                is_active=True,
                updated_at=now,
            )
        )
    await session.commit()

    logger.info(
        "Pattern discovery complete",
        extra={
            "organization_id": organization_id,
            "analyzed_decisions": len(decisions),
            "patterns": len(findings),
        },
    )

    patterns = [
        PatternRead(
            id=pattern_id(organization_id, f.pattern_type, f.name),
            organization_id=organization_id,
            name=f.name,
            description=f.description,
            pattern_type=f.pattern_type,
            conditions=f.conditions,
            outcomes=f.outcomes,
            confidence=f.confidence,
            sample_size=f.sample_size,
            decision_ids=f.decision_ids,
            updated_at=now,
        )
        for f in findings
    ]
    patterns.sort(key=lambda p: p.confidence, reverse=True)
    return DiscoveryResult(patterns=patterns, analyzed_decisions=len(decisions), discovery_timestamp=now)


async def list_patterns(
    session: AsyncSession,
    organization_id: str,
    pattern_type: str | None = None,
    active_only: bool = True,
) -> list[Pattern]:
    conditions = [Pattern.organization_id == organization_id]
    if pattern_type:
        try:
            conditions.append(Pattern.pattern_type == PatternType(pattern_type))
        except ValueError as exc:
            raise InvalidArgumentError(f"Invalid pattern type {pattern_type!r}") from exc
    if active_only:
        conditions.append(Pattern.is_active.is_(True))

    result = await session.scalars(
        select(Pattern).where(*conditions).order_by(Pattern.confidence.desc(), Pattern.id)
    )
    return list(result.all())
