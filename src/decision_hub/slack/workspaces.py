"""Lookups from Slack identifiers to tenants and monitored channels."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.models import SlackChannel, SlackWorkspace


async def get_workspace_by_team(session: AsyncSession, team_id: str | None) -> SlackWorkspace | None:
    if not team_id:
        return None
    return await session.scalar(
        select(SlackWorkspace).where(SlackWorkspace.team_id == team_id, SlackWorkspace.is_active.is_(True))
    )


async def get_workspace_for_org(session: AsyncSession, organization_id: str) -> SlackWorkspace | None:
    return await session.scalar(
        select(SlackWorkspace)
        .where(SlackWorkspace.organization_id == organization_id, SlackWorkspace.is_active.is_(True))
        .limit(1)
    )


async def get_monitored_channel(
    session: AsyncSession, organization_id: str, channel_id: str
) -> SlackChannel | None:
    return await session.scalar(
        select(SlackChannel).where(
            SlackChannel.organization_id == organization_id,
            SlackChannel.channel_id == channel_id,
            SlackChannel.is_active.is_(True),
        )
    )


async def list_monitored_channels(session: AsyncSession, organization_id: str) -> list[SlackChannel]:
    result = await session.scalars(
        select(SlackChannel)
        .where(SlackChannel.organization_id == organization_id, SlackChannel.is_active.is_(True))
        .order_by(SlackChannel.channel_name)
    )
    return list(result.all())
