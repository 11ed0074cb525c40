"""Async Slack clients, one per installed workspace.

Each workspace has its own bot token, so clients are cached by token rather
than held as a single process-wide instance.
"""

from slack_sdk.web.async_client import AsyncWebClient

_clients: dict[str, AsyncWebClient] = {}


async def get_slack_client(bot_token: str) -> AsyncWebClient:
    """Return a cached async Slack client for the bot token."""
    if bot_token not in _clients:
        _clients[bot_token] = AsyncWebClient(token=bot_token)
    return _clients[bot_token]


def reset_clients() -> None:
    """Reset cached client instances. Used for testing."""
    _clients.clear()
