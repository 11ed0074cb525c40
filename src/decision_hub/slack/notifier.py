"""Slack notifications for the review lifecycle.

All functions are fire-and-forget: they catch and log Slack errors but never
raise, so a failed DM cannot undo a stored candidate or a review transition.
"""

import logging

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from decision_hub.db.models import ExtractionCandidate
from decision_hub.decisions.commit import slack_permalink
from decision_hub.models.candidates import CandidateNotes, CandidateStatus
from decision_hub.slack.blocks import confirmation_blocks, resolved_blocks, resolved_fallback_text

logger = logging.getLogger(__name__)


async def send_confirmation_dm(
    client: AsyncWebClient,
    slack_user_id: str,
    candidate: ExtractionCandidate,
    channel_id: str,
    source_ts: str | None = None,
) -> tuple[str, str] | None:
    """DM the author a Confirm / Edit / Ignore prompt for a new candidate.

    Returns ``(dm_channel_id, message_ts)`` so the message can be updated in
    place after review, or None if the DM could not be sent.
    """
    try:
        conversation = await client.conversations_open(users=slack_user_id)
        dm_channel_id = (conversation.get("channel") or {}).get("id")
        if not dm_channel_id:
            return None

        blocks = confirmation_blocks(
            candidate.id,
            candidate.title,
            candidate.rationale,
            candidate.confidence,
            area=candidate.notes.area,
            channel_name=candidate.source_channel,
            source_url=slack_permalink(channel_id, source_ts or candidate.source_thread_ts),
        )
        message = await client.chat_postMessage(
            channel=dm_channel_id,
            text=f"Decision detected: {candidate.title}",
            blocks=blocks,
        )
    except SlackApiError:
        logger.warning(
            "Failed to send confirmation DM",
            extra={"candidate_id": candidate.id, "slack_user_id": slack_user_id},
            exc_info=True,
        )
        return None

    if not message.get("ok") or not message.get("ts"):
        return None
    return dm_channel_id, message["ts"]


async def update_review_message(
    client: AsyncWebClient,
    notes: CandidateNotes,
    title: str,
    status: CandidateStatus,
    actor: str | None,
) -> None:
    """Replace the confirmation DM with its resolved state, if one was sent."""
    if not notes.has_dm_reference:
        return
    try:
        await client.chat_update(
            channel=notes.dm_channel_id,
            ts=notes.dm_message_ts,
            blocks=resolved_blocks(title, status, actor),
            text=resolved_fallback_text(title, status),
        )
    except SlackApiError:
        logger.warning(
            "Failed to update confirmation DM",
            extra={"dm_channel_id": notes.dm_channel_id, "dm_message_ts": notes.dm_message_ts},
            exc_info=True,
        )
