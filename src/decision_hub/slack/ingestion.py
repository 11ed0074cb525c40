"""Message ingestion and thread aggregation.

Runs after the webhook has been acknowledged. Each message is stored first
(idempotently, by ``(organization, channel, message_ts)``) and only then is
the thread counted, so the count always includes the message that triggered
it. A redelivered message is a no-op insert and stops processing there.
"""

import logging

from slack_sdk.web.async_client import AsyncWebClient
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.engine import insert_or_ignore, session_scope, utcnow
from decision_hub.db.models import ExtractionCandidate, RawMessage, SlackChannel
from decision_hub.extraction.engine import process
from decision_hub.models.candidates import CandidateStatus
from decision_hub.models.slack import SlackMessage, ThreadMessage
from decision_hub.policy import resolve_policy
from decision_hub.slack.client import get_slack_client
from decision_hub.slack.notifier import send_confirmation_dm
from decision_hub.slack.users import resolve_user_name
from decision_hub.slack.workspaces import get_monitored_channel, get_workspace_by_team

logger = logging.getLogger(__name__)


async def store_message(
    session: AsyncSession,
    organization_id: str,
    message: SlackMessage,
    user_name: str | None,
) -> bool:
    """Insert a RawMessage. Returns False if it was already stored."""
    return await insert_or_ignore(
        session,
        RawMessage,
        {
            "organization_id": organization_id,
            "channel_id": message.channel_id,
            "message_ts": message.message_ts,
            "thread_ts": message.thread_ts,
            "user_id": message.user_id,
            "user_name": user_name,
            "text": message.text,
            "raw_payload": message.raw,
            "ingested_at": utcnow(),
        },
    )


async def has_live_candidate(
    session: AsyncSession, organization_id: str, channel_name: str, thread_ts: str
) -> bool:
    """True if a non-dismissed candidate already covers this thread."""
    existing = await session.scalar(
        select(ExtractionCandidate.id)
        .where(
            ExtractionCandidate.organization_id == organization_id,
            ExtractionCandidate.source_channel == channel_name,
            ExtractionCandidate.source_thread_ts == thread_ts,
            ExtractionCandidate.status != CandidateStatus.DISMISSED,
        )
        .limit(1)
    )
    return existing is not None


def _thread_filter(organization_id: str, channel_id: str, thread_ts: str):
    # The parent's own row has thread_ts unset (or equal to its ts), so match on either column
    return and_(
        RawMessage.organization_id == organization_id,
        RawMessage.channel_id == channel_id,
        or_(RawMessage.thread_ts == thread_ts, RawMessage.message_ts == thread_ts),
    )


async def count_thread_messages(
    session: AsyncSession, organization_id: str, channel_id: str, thread_ts: str
) -> int:
    count = await session.scalar(
        select(func.count()).select_from(RawMessage).where(_thread_filter(organization_id, channel_id, thread_ts))
    )
    return count or 0


async def load_thread_messages(
    session: AsyncSession, organization_id: str, channel_id: str, thread_ts: str
) -> list[ThreadMessage]:
    """Stored thread messages in chronological order."""
    rows = (
        await session.scalars(select(RawMessage).where(_thread_filter(organization_id, channel_id, thread_ts)))
    ).all()
    rows = sorted(rows, key=lambda r: float(r.message_ts))
    return [ThreadMessage(message_ts=r.message_ts, user_name=r.user_name, text=r.text) for r in rows]


async def extract_thread_if_ready(
    session: AsyncSession,
    organization_id: str,
    channel: SlackChannel,
    thread_ts: str,
) -> ExtractionCandidate | None:
    """Run extraction over a thread once it is long enough and not yet covered."""
    policy = await resolve_policy(session, organization_id)
    count = await count_thread_messages(session, organization_id, channel.channel_id, thread_ts)
    if count < policy.thread_min_messages:
        return None
    if await has_live_candidate(session, organization_id, channel.channel_name, thread_ts):
        return None

    messages = await load_thread_messages(session, organization_id, channel.channel_id, thread_ts)
    return await process(
        session,
        organization_id,
        messages,
        channel.channel_name,
        thread_ts=thread_ts,
        channel_id=channel.channel_id,
    )


async def notify_author(
    session: AsyncSession,
    client: AsyncWebClient,
    candidate: ExtractionCandidate,
    slack_user_id: str,
    channel_id: str,
    source_ts: str,
) -> None:
    """DM the author about a new candidate and remember the DM for later edits."""
    dm_reference = await send_confirmation_dm(client, slack_user_id, candidate, channel_id, source_ts)
    if dm_reference is None:
        return
    dm_channel_id, dm_message_ts = dm_reference
    candidate.update_notes(dm_channel_id=dm_channel_id, dm_message_ts=dm_message_ts)
    await session.commit()


async def _ingest(session: AsyncSession, message: SlackMessage, team_id: str) -> None:
    workspace = await get_workspace_by_team(session, team_id)
    if workspace is None:
        logger.warning("No active workspace for team", extra={"team_id": team_id})
        return

    organization_id = workspace.organization_id
    channel = await get_monitored_channel(session, organization_id, message.channel_id)
    if channel is None:
        return

    client = await get_slack_client(workspace.bot_token)
    user_name = await resolve_user_name(client, message.user_id)

    stored = await store_message(session, organization_id, message, user_name)
    await session.commit()
    if not stored:
        logger.info(
            "Duplicate message delivery ignored",
            extra={"organization_id": organization_id, "channel_id": message.channel_id, "ts": message.message_ts},
        )
        return

    if message.thread_ts:
        source_ts = message.thread_ts
        candidate = await extract_thread_if_ready(session, organization_id, channel, message.thread_ts)
    else:
        source_ts = message.message_ts
        candidate = await process(
            session,
            organization_id,
            [ThreadMessage(message_ts=message.message_ts, user_name=user_name, text=message.text)],
            channel.channel_name,
            channel_id=channel.channel_id,
        )

    if candidate is not None and message.user_id:
        await notify_author(session, client, candidate, message.user_id, channel.channel_id, source_ts)


async def ingest_message(event: dict, team_id: str) -> None:
    """Background task: store a message event and extract a decision if warranted.

    Failures are logged with their tenant/channel/thread context and never
    reach Slack, which has already been acknowledged.
    """
    message = SlackMessage.from_event(event)
    try:
        async with session_scope() as session:
            await _ingest(session, message, team_id)
    except Exception:
        logger.error(
            "Message ingestion failed",
            extra={
                "team_id": team_id,
                "channel_id": message.channel_id,
                "message_ts": message.message_ts,
                "thread_ts": message.thread_ts,
            },
            exc_info=True,
        )
