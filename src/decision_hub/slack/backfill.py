"""Historical backfill of monitored channels.

Walks each channel's history back to ``now - months * 30 days``, stores every
message, follows threads with enough replies, and runs extraction on threads
that aren't already covered by a live candidate. One channel failing doesn't
stop the others.
"""

import logging
import time

from slack_sdk.web.async_client import AsyncWebClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.config import get_settings
from decision_hub.db.engine import session_scope, utcnow
from decision_hub.db.models import SlackChannel
from decision_hub.errors import InvalidArgumentError, NotFoundError
from decision_hub.extraction.engine import process
from decision_hub.models.slack import SlackMessage, ThreadMessage
from decision_hub.policy import resolve_policy
from decision_hub.slack.client import get_slack_client
from decision_hub.slack.history import iter_pages
from decision_hub.slack.ingestion import has_live_candidate, store_message
from decision_hub.slack.users import resolve_user_name
from decision_hub.slack.workspaces import get_workspace_for_org, list_monitored_channels

logger = logging.getLogger(__name__)

MIN_MONTHS = 1
MAX_MONTHS = 12
PAGE_LIMIT = 200
SECONDS_PER_MONTH = 30 * 24 * 60 * 60


async def start_backfill(session: AsyncSession, organization_id: str, months: int) -> dict:
    """Validate a backfill request before it is scheduled.

    Raises:
        InvalidArgumentError: ``months`` out of range, or no monitored channels.
        NotFoundError: The organization has no active Slack workspace.
    """
    if not MIN_MONTHS <= months <= MAX_MONTHS:
        raise InvalidArgumentError(f"months must be between {MIN_MONTHS} and {MAX_MONTHS}")
    if await get_workspace_for_org(session, organization_id) is None:
        raise NotFoundError("No active Slack workspace found")
    channels = await list_monitored_channels(session, organization_id)
    if not channels:
        raise InvalidArgumentError("No monitored channels configured. Select channels first.")
    return {"status": "started", "channels": len(channels), "months": months}


async def _backfill_thread(
    session: AsyncSession,
    client: AsyncWebClient,
    organization_id: str,
    channel_id: str,
    channel_name: str,
    thread_ts: str,
    min_messages: int,
) -> int:
    """Store a thread's replies and extract from it. Returns the number of new rows."""
    if await has_live_candidate(session, organization_id, channel_name, thread_ts):
        return 0

    stored = 0
    thread: list[ThreadMessage] = []
    async for page in iter_pages(client.conversations_replies, channel=channel_id, ts=thread_ts, limit=PAGE_LIMIT):
        for raw in page.messages:
            if raw.get("subtype"):
                continue
            message = SlackMessage.from_event(raw, channel_id)
            message.thread_ts = message.thread_ts or thread_ts
            user_name = await resolve_user_name(client, message.user_id)
            if await store_message(session, organization_id, message, user_name):
                stored += 1
            thread.append(ThreadMessage(message_ts=message.message_ts, user_name=user_name, text=message.text))
    await session.commit()

    if len(thread) >= min_messages:
        try:
            await process(session, organization_id, thread, channel_name, thread_ts=thread_ts, channel_id=channel_id)
        except Exception:
            await session.rollback()
            logger.error(
                "Backfill extraction failed for thread",
                extra={"organization_id": organization_id, "channel": channel_name, "thread_ts": thread_ts},
                exc_info=True,
            )
    return stored


async def backfill_channel(
    session: AsyncSession,
    client: AsyncWebClient,
    organization_id: str,
    channel_id: str,
    channel_name: str,
    oldest: str,
) -> int:
    """Backfill one channel. Returns the number of newly stored messages."""
    settings = get_settings()
    policy = await resolve_policy(session, organization_id)
    stored = 0

    async for page in iter_pages(
        client.conversations_history, channel=channel_id, oldest=oldest, limit=PAGE_LIMIT
    ):
        for raw in page.messages:
            if raw.get("subtype"):
                continue
            message = SlackMessage.from_event(raw, channel_id)
            user_name = await resolve_user_name(client, message.user_id)
            if await store_message(session, organization_id, message, user_name):
                stored += 1
            if message.reply_count >= settings.backfill_min_replies:
                stored += await _backfill_thread(
                    session,
                    client,
                    organization_id,
                    channel_id,
                    channel_name,
                    message.message_ts,
                    policy.thread_min_messages,
                )
        await session.commit()

    return stored


async def run_backfill(organization_id: str, months: int) -> None:
    """Background task: backfill every active monitored channel of the organization."""
    oldest = str(int(time.time()) - months * SECONDS_PER_MONTH)
    try:
        async with session_scope() as session:
            workspace = await get_workspace_for_org(session, organization_id)
            if workspace is None:
                logger.warning("Backfill skipped, no workspace", extra={"organization_id": organization_id})
                return
            client = await get_slack_client(workspace.bot_token)
            # Plain tuples: a rollback after a failed channel expires ORM instances
            channels = [
                (c.id, c.channel_id, c.channel_name) for c in await list_monitored_channels(session, organization_id)
            ]

            for row_id, channel_id, channel_name in channels:
                log_context = {"organization_id": organization_id, "channel": channel_name}
                try:
                    stored = await backfill_channel(session, client, organization_id, channel_id, channel_name, oldest)
                    await session.execute(
                        update(SlackChannel).where(SlackChannel.id == row_id).values(last_synced_at=utcnow())
                    )
                    await session.commit()
                except Exception:
                    await session.rollback()
                    logger.error("Backfill failed for channel", extra=log_context, exc_info=True)
                    continue
                logger.info("Backfill complete for channel", extra={**log_context, "new_messages": stored})
    except Exception:
        logger.error("Backfill run failed", extra={"organization_id": organization_id}, exc_info=True)
