"""Slack user display-name resolution with a process-wide cache."""

import logging

from cachetools import TTLCache
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

logger = logging.getLogger(__name__)

_user_names: TTLCache = TTLCache(maxsize=10_000, ttl=86_400)  # 24-hour TTL


async def resolve_user_name(client: AsyncWebClient, user_id: str | None) -> str | None:
    """Return the user's real name, display name, or handle, in that order.

    Falls back to the raw user id when the lookup fails. Failures are not
    cached, so a later message retries the lookup.
    """
    if not user_id:
        return None
    if user_id in _user_names:
        return _user_names[user_id]

    try:
        response = await client.users_info(user=user_id)
    except SlackApiError:
        logger.warning("users.info failed, using raw id", extra={"user_id": user_id}, exc_info=True)
        return user_id

    user = response.get("user") or {}
    profile = user.get("profile") or {}
    name = user.get("real_name") or profile.get("display_name") or user.get("name") or user_id
    _user_names[user_id] = name
    return name


def clear_user_cache() -> None:
    """Clear cached names. Used for testing."""
    _user_names.clear()
