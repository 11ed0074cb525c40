"""App Home tab: a small dashboard published when a user opens the bot's profile."""

import logging

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.config import get_settings
from decision_hub.db.models import ExtractionCandidate
from decision_hub.models.candidates import CandidateStatus
from decision_hub.slack.blocks import app_home_view

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


async def publish_app_home(
    session: AsyncSession,
    client: AsyncWebClient,
    organization_id: str,
    slack_user_id: str,
) -> None:
    pending_count = await session.scalar(
        select(func.count())
        .select_from(ExtractionCandidate)
        .where(
            ExtractionCandidate.organization_id == organization_id,
            ExtractionCandidate.status == CandidateStatus.PENDING,
        )
    )
    recent = (
        await session.scalars(
            select(ExtractionCandidate)
            .where(ExtractionCandidate.organization_id == organization_id)
            .order_by(ExtractionCandidate.extracted_at.desc())
            .limit(RECENT_LIMIT)
        )
    ).all()

    view = app_home_view(pending_count or 0, list(recent), get_settings().app_url)
    try:
        await client.views_publish(user_id=slack_user_id, view=view)
    except SlackApiError:
        logger.warning(
            "Failed to publish App Home",
            extra={"organization_id": organization_id, "slack_user_id": slack_user_id},
            exc_info=True,
        )
