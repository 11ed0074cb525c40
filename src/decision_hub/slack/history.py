"""Cursor pagination over Slack history APIs."""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from decision_hub.models.slack import HistoryPage


async def iter_pages(
    method: Callable[..., Awaitable[Any]],
    *,
    start_cursor: str | None = None,
    **kwargs: Any,
) -> AsyncIterator[HistoryPage]:
    """Lazily yield pages from a cursor-paginated Slack method.

    ``method`` is a bound client call such as ``client.conversations_history``.
    Iteration stops when Slack returns no ``next_cursor``. A run interrupted
    mid-way resumes by passing the last seen ``next_cursor`` as ``start_cursor``.
    """
    cursor = start_cursor
    while True:
        call_kwargs = {**kwargs, "cursor": cursor} if cursor else kwargs
        response = await method(**call_kwargs)
        metadata = response.get("response_metadata") or {}
        page = HistoryPage(
            messages=response.get("messages") or [],
            next_cursor=metadata.get("next_cursor") or None,
        )
        yield page
        if page.next_cursor is None:
            return
        cursor = page.next_cursor
