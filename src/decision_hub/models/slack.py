"""Slack message and history models."""

from pydantic import BaseModel


class SlackMessage(BaseModel):
    """A Slack message event with the fields the pipeline stores."""

    channel_id: str
    message_ts: str  # Slack message ts, e.g., "1234567890.123456"
    thread_ts: str | None = None
    user_id: str | None = None
    text: str = ""
    reply_count: int = 0
    raw: dict = {}

    @classmethod
    def from_event(cls, event: dict, channel_id: str | None = None) -> "SlackMessage":
        """Build from an Events API ``message`` event or a history API message."""
        return cls(
            channel_id=channel_id or event.get("channel", ""),
            message_ts=event["ts"],
            thread_ts=event.get("thread_ts"),
            user_id=event.get("user"),
            text=event.get("text", "") or "",
            reply_count=event.get("reply_count", 0) or 0,
            raw=event,
        )


class ThreadMessage(BaseModel):
    """One line of conversation handed to the extraction engine."""

    message_ts: str
    user_name: str | None = None
    text: str


class HistoryPage(BaseModel):
    """One page of a cursor-paginated Slack history call."""

    messages: list[dict]
    next_cursor: str | None = None


class BackfillRequest(BaseModel):
    months: int = 3
