"""Two-stage decision detection: classify a conversation, then extract fields.

Both stages are independent JSON-mode calls on the tenant's fast model. A
candidate is only written when classification is positive and its confidence
is strictly above the tenant's threshold.
"""

import json
import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.engine import generate_uuid, insert_or_ignore, utcnow
from decision_hub.db.models import ExtractionCandidate
from decision_hub.errors import UpstreamError
from decision_hub.llm.client import chat_completion
from decision_hub.llm.config import LLMConfig, ModelTier, resolve_llm_config
from decision_hub.llm.parsing import parse_llm_json
from decision_hub.llm.prompts import CLASSIFICATION_SYSTEM_PROMPT, EXTRACTION_SYSTEM_PROMPT
from decision_hub.llm.schemas import Classification, Extraction
from decision_hub.models.candidates import CandidateNotes, CandidateStatus
from decision_hub.models.slack import ThreadMessage
from decision_hub.policy import resolve_policy

logger = logging.getLogger(__name__)


async def classify(text: str, config: LLMConfig) -> Classification:
    """Ask the model whether the text records a decision.

    Never raises for model trouble: provider failures and unparseable output
    both come back as a negative classification.
    """
    try:
        result = await chat_completion(
            config,
            CLASSIFICATION_SYSTEM_PROMPT,
            text,
            tier=ModelTier.FAST,
            json_mode=True,
            purpose="classify",
        )
    except UpstreamError:
        logger.warning("Classification call failed, treating as not a decision", exc_info=True)
        return Classification.negative()

    try:
        return parse_llm_json(result.text, Classification)
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Failed to parse classification response", extra={"raw": result.text[:500]})
        return Classification.negative()


async def extract(text: str, config: LLMConfig) -> Extraction:
    """Pull title, rationale, participants, and alternatives from the text.

    Unparseable output yields an "Untitled decision" with empty fields.

    Raises:
        UpstreamError: If the provider call fails after retries.
    """
    result = await chat_completion(
        config,
        EXTRACTION_SYSTEM_PROMPT,
        text,
        tier=ModelTier.FAST,
        json_mode=True,
        purpose="extract",
    )
    try:
        return parse_llm_json(result.text, Extraction)
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Failed to parse extraction response", extra={"raw": result.text[:500]})
        return Extraction.untitled()


def format_thread_text(messages: list[ThreadMessage]) -> str:
    """Render messages as ``author: text`` lines in the order given."""
    return "\n".join(f"{m.user_name or 'Unknown'}: {m.text}" for m in messages)


def ts_to_datetime(ts: str) -> datetime:
    """Convert a Slack ts ("1700000000.000100") to an aware UTC datetime."""
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)


async def process(
    session: AsyncSession,
    organization_id: str,
    messages: list[ThreadMessage],
    channel_name: str,
    thread_ts: str | None = None,
    channel_id: str | None = None,
) -> ExtractionCandidate | None:
    """Classify a batch of messages and persist a pending candidate if it is a decision.

    Returns the new candidate, or None when the batch is not a decision, is
    below threshold, or a live candidate for the same thread already exists.
    """
    if not messages:
        return None

    log_context = {
        "organization_id": organization_id,
        "channel": channel_name,
        "thread_ts": thread_ts,
        "message_count": len(messages),
    }

    config = await resolve_llm_config(session, organization_id)
    policy = await resolve_policy(session, organization_id)
    text = format_thread_text(messages)

    classification = await classify(text, config)
    if not classification.is_decision or classification.confidence <= policy.extraction_confidence_threshold:
        logger.info(
            "No decision detected",
            extra={**log_context, "confidence": classification.confidence},
        )
        return None

    extraction = await extract(text, config)

    notes = CandidateNotes(
        classification=classification.model_dump(),
        extraction=extraction.model_dump(),
        message_count=len(messages),
        channel_id=channel_id,
    )
    candidate_id = generate_uuid()
    inserted = await insert_or_ignore(
        session,
        ExtractionCandidate,
        {
            "id": candidate_id,
            "organization_id": organization_id,
            "source_type": "slack",
            "source_channel": channel_name,
            "source_thread_ts": thread_ts,
            "source_message_ids": [m.message_ts for m in messages],
            "title": extraction.title,
            "rationale": extraction.rationale,
            "participants": extraction.participants,
            "alternatives": [a.model_dump() for a in extraction.alternatives],
            "confidence": classification.confidence,
            "raw_extraction": notes.model_dump(mode="json", exclude_none=True),
            "status": CandidateStatus.PENDING,
            "extracted_at": utcnow(),
            "source_timestamp": min(ts_to_datetime(m.message_ts) for m in messages),
        },
    )
    await session.commit()

    if not inserted:
        logger.info("Live candidate already exists for thread, skipping", extra=log_context)
        return None

    candidate = await session.get(ExtractionCandidate, candidate_id)
    logger.info(
        "Decision candidate created",
        extra={**log_context, "candidate_id": candidate_id, "confidence": classification.confidence},
    )
    return candidate
