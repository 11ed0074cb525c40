"""Slack event dispatch and message filtering logic."""

import logging

from fastapi import BackgroundTasks
from fastapi.responses import JSONResponse

from decision_hub.db.engine import session_scope
from decision_hub.slack.app_home import publish_app_home
from decision_hub.slack.client import get_slack_client
from decision_hub.slack.ingestion import ingest_message
from decision_hub.slack.unfurl import unfurl_links
from decision_hub.slack.workspaces import get_workspace_by_team

logger = logging.getLogger(__name__)


def handle_slack_event(payload: dict, background_tasks: BackgroundTasks) -> JSONResponse:
    """Dispatch a Slack event based on its type.

    - url_verification: return the challenge token
    - event_callback: process the contained event
    - anything else: acknowledge with 200
    """
    if payload.get("type") == "url_verification":
        return JSONResponse({"challenge": payload.get("challenge", "")})

    if payload.get("type") == "event_callback":
        event = payload.get("event") or {}
        team_id = payload.get("team_id")
        event_type = event.get("type")
        if event_type == "message":
            handle_message_event(event, team_id, background_tasks)
        elif event_type == "link_shared":
            background_tasks.add_task(handle_link_shared, event, team_id)
        elif event_type == "app_home_opened" and event.get("tab") == "home":
            background_tasks.add_task(handle_app_home_opened, event, team_id)

    return JSONResponse({"ok": True})


def handle_message_event(event: dict, team_id: str | None, background_tasks: BackgroundTasks) -> None:
    """Apply message filters and dispatch ingestion to background.

    Skipped:
    1. Any subtype (edits, deletes, joins, bot_message, ...)
    2. Has bot_id
    3. No author, channel, or ts
    """
    if event.get("subtype") is not None:
        return
    if event.get("bot_id"):
        return
    if not event.get("user") or not event.get("channel") or not event.get("ts"):
        return

    background_tasks.add_task(ingest_message, event, team_id)


async def handle_link_shared(event: dict, team_id: str | None) -> None:
    try:
        async with session_scope() as session:
            workspace = await get_workspace_by_team(session, team_id)
            if workspace is None:
                return
            client = await get_slack_client(workspace.bot_token)
            await unfurl_links(session, client, workspace.organization_id, event)
    except Exception:
        logger.error("link_shared handling failed", extra={"team_id": team_id}, exc_info=True)


async def handle_app_home_opened(event: dict, team_id: str | None) -> None:
    try:
        async with session_scope() as session:
            workspace = await get_workspace_by_team(session, team_id)
            if workspace is None:
                return
            client = await get_slack_client(workspace.bot_token)
            await publish_app_home(session, client, workspace.organization_id, event.get("user", ""))
    except Exception:
        logger.error("app_home_opened handling failed", extra={"team_id": team_id}, exc_info=True)
