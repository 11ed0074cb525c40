"""Slack webhook routes with signature verification."""

import json

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.auth import Principal, get_principal
from decision_hub.db.engine import get_session
from decision_hub.errors import InvalidArgumentError
from decision_hub.models.slack import BackfillRequest
from decision_hub.slack.backfill import run_backfill, start_backfill
from decision_hub.slack.command import handle_context_command
from decision_hub.slack.handlers import handle_slack_event
from decision_hub.slack.interactions import handle_interaction
from decision_hub.slack.verification import verify_slack_form, verify_slack_request

router = APIRouter(prefix="/slack", tags=["slack"])


@router.post("/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: dict = Depends(verify_slack_request),
) -> JSONResponse:
    """Receive Slack webhook events.

    Slack retries (X-Slack-Retry-Num header) are acknowledged immediately
    to prevent duplicate processing.
    """
    if request.headers.get("X-Slack-Retry-Num"):
        return JSONResponse({"ok": True})

    return handle_slack_event(payload, background_tasks)


@router.post("/interactions")
async def slack_interactions(
    background_tasks: BackgroundTasks,
    form: dict[str, str] = Depends(verify_slack_form),
    session: AsyncSession = Depends(get_session),
) -> Response:
    """Receive button clicks and modal submissions (form body with a ``payload`` JSON field)."""
    raw = form.get("payload")
    if not raw:
        raise InvalidArgumentError("Missing payload")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidArgumentError("Invalid payload JSON") from exc
    return await handle_interaction(session, payload, background_tasks)


@router.post("/command")
async def slack_command(
    background_tasks: BackgroundTasks,
    form: dict[str, str] = Depends(verify_slack_form),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Receive the ``/context`` slash command."""
    return await handle_context_command(session, form, background_tasks)


@router.post("/backfill")
async def slack_backfill(
    body: BackfillRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Start a historical backfill of the organization's monitored channels."""
    started = await start_backfill(session, principal.organization_id, body.months)
    background_tasks.add_task(run_backfill, principal.organization_id, body.months)
    return started
