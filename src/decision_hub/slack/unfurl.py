"""Link unfurls for decision links shared in Slack."""

import logging
import re
from urllib.parse import urlparse

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.config import get_settings
from decision_hub.db.models import ExtractionCandidate
from decision_hub.slack.blocks import unfurl_blocks

logger = logging.getLogger(__name__)

DECISION_PATH_RE = re.compile(r"^/vault/([a-f0-9-]+)$", re.IGNORECASE)


def parse_decision_link(url: str, app_url: str | None = None) -> str | None:
    """Return the candidate id from ``{app_url}/vault/{id}``, or None for any other link."""
    app_host = urlparse(app_url or get_settings().app_url).hostname
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.hostname or parsed.hostname.removeprefix("www.") != (app_host or "").removeprefix("www."):
        return None
    match = DECISION_PATH_RE.match(parsed.path)
    return match.group(1) if match else None


async def unfurl_links(
    session: AsyncSession,
    client: AsyncWebClient,
    organization_id: str,
    event: dict,
) -> int:
    """Unfurl every decision link in a ``link_shared`` event. Returns how many were unfurled."""
    unfurls: dict[str, dict] = {}
    for link in event.get("links") or []:
        url = link.get("url", "")
        candidate_id = parse_decision_link(url)
        if candidate_id is None:
            continue
        candidate = await session.scalar(
            select(ExtractionCandidate).where(
                ExtractionCandidate.id == candidate_id,
                ExtractionCandidate.organization_id == organization_id,
            )
        )
        if candidate is not None:
            unfurls[url] = unfurl_blocks(candidate)

    if not unfurls:
        return 0

    try:
        await client.chat_unfurl(channel=event.get("channel"), ts=event.get("message_ts"), unfurls=unfurls)
    except SlackApiError:
        logger.warning(
            "Failed to unfurl decision links",
            extra={"organization_id": organization_id, "channel_id": event.get("channel")},
            exc_info=True,
        )
        return 0
    return len(unfurls)
