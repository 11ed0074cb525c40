"""Turn reviewed candidates (and first-party submissions) into canonical decisions.

Writes never wait on enrichment: if the embedding call fails, the decision is
stored with ``embedding = NULL`` and picked up later by ``backfill_embeddings``.
"""

import json
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.engine import generate_uuid, utcnow
from decision_hub.db.models import Decision, ExtractionCandidate
from decision_hub.errors import UpstreamError
from decision_hub.llm.embeddings import embed_text
from decision_hub.models.candidates import CandidateEdits
from decision_hub.models.decisions import DecisionCreate, EmbeddingBackfillResult

logger = logging.getLogger(__name__)

SLACK_AGENT_ID = "slack-extraction"
CONTEXT_TEXT_LIMIT = 500


def build_decision_text(
    action_taken: str,
    context_snapshot: dict | None = None,
    reasoning: str | None = None,
    alternatives: list[dict] | None = None,
    outcome: str | None = None,
) -> str:
    """Canonical searchable text for a decision; this is what gets embedded."""
    parts = [f"Action: {action_taken}"]
    if context_snapshot:
        parts.append(f"Context: {json.dumps(context_snapshot, default=str)[:CONTEXT_TEXT_LIMIT]}")
    if reasoning:
        parts.append(f"Rationale: {reasoning}")
    alternatives = [a for a in alternatives or [] if isinstance(a, dict) and a.get("option")]
    if alternatives:
        rendered = "; ".join(
            f"{a['option']} (rejected: {a['reason_rejected']})" if a.get("reason_rejected") else a["option"]
            for a in alternatives
        )
        parts.append(f"Alternatives considered: {rendered}")
    if outcome:
        parts.append(f"Outcome: {outcome}")
    return "\n".join(parts)


def slack_permalink(channel_id: str | None, ts: str | None) -> str | None:
    if not channel_id or not ts:
        return None
    return f"https://slack.com/archives/{channel_id}/p{ts.replace('.', '')}"


def effective_fields(candidate: ExtractionCandidate, edits: CandidateEdits | None = None) -> dict:
    """Candidate core fields with edits applied. The candidate is not mutated.

    A decision always keeps a title, so a blank title edit is ignored. The
    other fields take any provided value, so ``""`` or ``[]`` clears them;
    ``None`` leaves them unchanged.
    """
    fields = {
        "title": candidate.title,
        "rationale": candidate.rationale,
        "participants": list(candidate.participants or []),
        "alternatives": list(candidate.alternatives or []),
    }
    if edits is None:
        return fields
    if edits.title and edits.title.strip():
        fields["title"] = edits.title
    if edits.rationale is not None:
        fields["rationale"] = edits.rationale
    if edits.participants is not None:
        fields["participants"] = edits.participants
    if edits.alternatives is not None:
        fields["alternatives"] = [a.model_dump() for a in edits.alternatives]
    return fields


def candidate_context(candidate: ExtractionCandidate, fields: dict, edits: CandidateEdits | None = None) -> dict:
    notes = candidate.notes
    context = {
        "source": candidate.source_type,
        "channel": candidate.source_channel,
        "participants": fields["participants"],
        "alternatives": fields["alternatives"],
    }
    area = (edits.area if edits else None) or notes.area
    kind = (edits.type if edits else None) or notes.type
    if area:
        context["area"] = area
    if kind:
        context["type"] = kind
    first_ts = candidate.source_thread_ts or next(iter(candidate.source_message_ids or []), None)
    source_url = slack_permalink(notes.channel_id, first_ts)
    if source_url:
        context["source_url"] = source_url
    return context


async def embed_or_none(text: str, log_context: dict) -> list[float] | None:
    """Embed text, logging and returning None on provider failure."""
    try:
        return await embed_text(text)
    except UpstreamError:
        logger.warning("Embedding failed, storing decision without one", extra=log_context, exc_info=True)
        return None


async def commit_candidate(
    session: AsyncSession,
    candidate: ExtractionCandidate,
    edits: CandidateEdits | None = None,
) -> Decision:
    """Stage the Decision for a confirmed/edited candidate.

    Adds and flushes the row but does not commit; the caller owns the
    transaction so the decision and the candidate transition land together.
    """
    fields = effective_fields(candidate, edits)
    context = candidate_context(candidate, fields, edits)
    reasoning = fields["rationale"] or fields["title"]

    embedding = await embed_or_none(
        build_decision_text(fields["title"], context, fields["rationale"], fields["alternatives"]),
        {"organization_id": candidate.organization_id, "candidate_id": candidate.id},
    )

    decision = Decision(
        id=generate_uuid(),
        organization_id=candidate.organization_id,
        agent_id=SLACK_AGENT_ID,
        timestamp=candidate.source_timestamp or utcnow(),
        action_taken=fields["title"],
        confidence=candidate.confidence,
        context_snapshot=context,
        reasoning=reasoning,
        sources=[{"type": "SLACK", "content": reasoning, "weight": 1.0}],
        embedding=embedding,
    )
    session.add(decision)
    await session.flush()
    return decision


async def log_decision(session: AsyncSession, organization_id: str, payload: DecisionCreate) -> Decision:
    """Record a decision submitted directly by an agent or integration."""
    embedding = await embed_or_none(
        build_decision_text(
            payload.action_taken,
            payload.context_snapshot,
            payload.reasoning,
            payload.context_snapshot.get("alternatives"),
            payload.outcome,
        ),
        {"organization_id": organization_id, "agent_id": payload.agent_id},
    )
    decision = Decision(
        id=generate_uuid(),
        organization_id=organization_id,
        agent_id=payload.agent_id,
        timestamp=payload.timestamp or utcnow(),
        action_taken=payload.action_taken,
        confidence=payload.confidence,
        context_snapshot=payload.context_snapshot,
        reasoning=payload.reasoning,
        outcome=payload.outcome,
        sources=[s.model_dump() for s in payload.sources],
        embedding=embedding,
    )
    session.add(decision)
    await session.commit()
    logger.info(
        "Decision logged",
        extra={"organization_id": organization_id, "decision_id": decision.id, "agent_id": payload.agent_id},
    )
    return decision


async def backfill_embeddings(
    session: AsyncSession,
    organization_id: str | None = None,
    batch_size: int = 100,
) -> EmbeddingBackfillResult:
    """Fill in embeddings for decisions stored without one.

    Only the ``embedding`` column is written; every other field is left as is.
    Each success is committed on its own so one failure doesn't lose the rest.
    """
    stmt = select(Decision).where(Decision.embedding.is_(None)).order_by(Decision.created_at).limit(batch_size)
    if organization_id:
        stmt = stmt.where(Decision.organization_id == organization_id)
    decisions = list((await session.scalars(stmt)).all())

    updated = failed = 0
    for decision in decisions:
        text = build_decision_text(
            decision.action_taken,
            decision.context_snapshot,
            decision.reasoning,
            (decision.context_snapshot or {}).get("alternatives"),
            decision.outcome,
        )
        embedding = await embed_or_none(
            text, {"organization_id": decision.organization_id, "decision_id": decision.id}
        )
        if embedding is None:
            failed += 1
            continue
        await session.execute(update(Decision).where(Decision.id == decision.id).values(embedding=embedding))
        await session.commit()
        updated += 1

    logger.info(
        "Embedding backfill complete",
        extra={"scanned": len(decisions), "updated": updated, "failed": failed},
    )
    return EmbeddingBackfillResult(scanned=len(decisions), updated=updated, failed=failed)
