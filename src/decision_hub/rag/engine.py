"""Answer questions from the organization's decision history.

Retrieval is cosine similarity over decision embeddings: pgvector's ``<=>``
on PostgreSQL, an in-process scan elsewhere. Generation only ever sees the
retrieved decisions; with nothing retrieved the model is not called at all.
"""

import logging
import math
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.models import Decision
from decision_hub.llm.client import chat_completion
from decision_hub.llm.config import ModelTier, resolve_llm_config
from decision_hub.llm.embeddings import embed_text
from decision_hub.llm.prompts import build_rag_system_prompt
from decision_hub.models.rag import AskResult, AskSource
from decision_hub.policy import resolve_policy

logger = logging.getLogger(__name__)

NO_CONTEXT_ANSWER = "I don't have enough context to answer this question. No related decisions were found."


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


async def search_decisions(
    session: AsyncSession,
    organization_id: str,
    query_vector: list[float],
    limit: int,
    threshold: float,
) -> list[tuple[Decision, float]]:
    """Decisions with ``similarity >= threshold``, most similar first, at most ``limit``."""
    conditions = [Decision.organization_id == organization_id, Decision.embedding.is_not(None)]

    if session.get_bind().dialect.name == "postgresql":
        distance = Decision.embedding.cosine_distance(query_vector).label("distance")
        rows = await session.execute(
            select(Decision, distance)
            .where(*conditions, distance <= 1 - threshold)
            .order_by(distance.asc(), Decision.id)
            .limit(limit)
        )
        return [(decision, 1.0 - float(d)) for decision, d in rows.all()]

    scored = []
    for decision in (await session.scalars(select(Decision).where(*conditions))).all():
        similarity = cosine_similarity(query_vector, [float(v) for v in decision.embedding])
        if similarity >= threshold:
            scored.append((decision, similarity))
    scored.sort(key=lambda pair: (-pair[1], pair[0].id))
    return scored[:limit]


def decision_fact_block(index: int, decision: Decision) -> str:
    context = decision.context_snapshot or {}
    participants = context.get("participants") or []
    people = f"\n     People involved: {', '.join(participants)}" if participants else ""
    return (
        f'Decision {index}: "{decision.action_taken}"\n'
        f"     Date: {decision.timestamp.isoformat()}{people}\n"
        f"     Rationale: {decision.reasoning or 'Not recorded'}\n"
        f"     Outcome: {decision.outcome or 'Not recorded'}\n"
        f"     Confidence: {round(decision.confidence * 100)}%"
    )


def to_source(decision: Decision, similarity: float) -> AskSource:
    context = decision.context_snapshot or {}
    return AskSource(
        decision_id=decision.id,
        action_taken=decision.action_taken,
        reasoning=decision.reasoning,
        participants=context.get("participants") or [],
        similarity=similarity,
        timestamp=decision.timestamp,
        source_url=context.get("source_url"),
    )


async def ask(
    session: AsyncSession,
    organization_id: str,
    question: str,
    limit: int | None = None,
    threshold: float | None = None,
) -> AskResult:
    """Retrieve related decisions and answer the question from them alone.

    ``limit`` and ``threshold`` default to the tenant's policy (5 and 0.5).

    Raises:
        UpstreamError: If embedding the question or generating the answer fails.
    """
    policy = await resolve_policy(session, organization_id)
    limit = limit or policy.rag_default_limit
    threshold = policy.rag_similarity_threshold if threshold is None else threshold

    query_vector = await embed_text(question)
    matches = await search_decisions(session, organization_id, query_vector, limit, threshold)
    log_context = {"organization_id": organization_id, "matches": len(matches)}

    if not matches:
        logger.info("No related decisions for question", extra=log_context)
        return AskResult(answer=NO_CONTEXT_ANSWER, sources=[])

    config = await resolve_llm_config(session, organization_id)
    system = build_rag_system_prompt(
        [decision_fact_block(i, decision) for i, (decision, _) in enumerate(matches, start=1)]
    )
    result = await chat_completion(config, system, question, tier=ModelTier.SMART, purpose="ask")

    logger.info("Question answered", extra=log_context)
    return AskResult(
        answer=result.text,
        sources=[to_source(decision, similarity) for decision, similarity in matches],
    )
