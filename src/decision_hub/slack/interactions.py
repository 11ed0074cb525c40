"""Slack interactivity: confirmation DM buttons and the edit modal.

Button clicks are acknowledged with an empty 200 and reviewed in the
background through the same state machine as the review API. The edit button
is the exception: Slack's ``trigger_id`` expires after three seconds and is
single use, so the modal is opened before responding. Modal submissions are
applied before responding too, so a failed edit keeps the modal open with an
inline error.
"""

import logging

from fastapi import BackgroundTasks, Response
from fastapi.responses import JSONResponse
from slack_sdk.errors import SlackApiError
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.engine import session_scope
from decision_hub.errors import DecisionHubError, InvalidStateError, NotFoundError
from decision_hub.models.candidates import CandidateEdits, CandidateStatus, ReviewAction
from decision_hub.review.service import get_candidate, review_one
from decision_hub.slack.blocks import (
    CONFIRM_ACTION_ID,
    EDIT_ACTION_ID,
    EDIT_MODAL_CALLBACK_ID,
    IGNORE_ACTION_ID,
    edit_modal,
)
from decision_hub.slack.client import get_slack_client
from decision_hub.slack.workspaces import get_workspace_by_team

logger = logging.getLogger(__name__)

BUTTON_ACTIONS = {
    CONFIRM_ACTION_ID: ReviewAction.CONFIRM,
    IGNORE_ACTION_ID: ReviewAction.DISMISS,
}


def _ack() -> Response:
    return Response(status_code=200)


def interaction_actor(payload: dict) -> str:
    user = payload.get("user") or {}
    return user.get("username") or user.get("name") or "someone"


def interaction_team_id(payload: dict) -> str | None:
    return (payload.get("team") or {}).get("id") or (payload.get("user") or {}).get("team_id")


def modal_edits(view: dict) -> CandidateEdits:
    """Read the edit modal's submitted state into CandidateEdits."""
    values = (view.get("state") or {}).get("values") or {}

    def text_value(block_id: str, action_id: str) -> str | None:
        value = ((values.get(block_id) or {}).get(action_id) or {}).get("value")
        return value.strip() if value and value.strip() else None

    def selected_value(block_id: str, action_id: str) -> str | None:
        selected = ((values.get(block_id) or {}).get(action_id) or {}).get("selected_option")
        return selected.get("value") if selected else None

    return CandidateEdits(
        title=text_value("title_block", "title_input"),
        rationale=text_value("rationale_block", "rationale_input"),
        area=selected_value("area_block", "area_input"),
        type=selected_value("type_block", "type_input"),
    )


async def apply_button_review(
    team_id: str | None,
    candidate_id: str,
    action: ReviewAction,
    actor: str,
) -> None:
    """Background task: run a review transition triggered from Slack.

    A candidate that was already reviewed elsewhere is logged and left alone;
    its DM was updated by whoever won.
    """
    log_context = {"team_id": team_id, "candidate_id": candidate_id, "action": action.value}
    try:
        async with session_scope() as session:
            workspace = await get_workspace_by_team(session, team_id)
            if workspace is None:
                logger.warning("Interaction from unknown workspace", extra=log_context)
                return
            await review_one(session, workspace.organization_id, candidate_id, action, reviewer=actor)
    except InvalidStateError:
        logger.info("Candidate already reviewed", extra=log_context)
    except Exception:
        logger.error("Slack review failed", extra=log_context, exc_info=True)


async def open_edit_modal(session: AsyncSession, payload: dict, candidate_id: str) -> None:
    """Open the edit modal for a pending candidate using the interaction's trigger_id."""
    log_context = {"candidate_id": candidate_id}
    workspace = await get_workspace_by_team(session, interaction_team_id(payload))
    if workspace is None:
        logger.warning("Edit requested from unknown workspace", extra=log_context)
        return
    try:
        candidate = await get_candidate(session, workspace.organization_id, candidate_id)
    except DecisionHubError:
        logger.warning("Edit requested for unknown candidate", extra=log_context)
        return
    if candidate.status != CandidateStatus.PENDING:
        logger.info("Edit requested for reviewed candidate", extra=log_context)
        return

    notes = candidate.notes
    client = await get_slack_client(workspace.bot_token)
    try:
        await client.views_open(
            trigger_id=payload.get("trigger_id"),
            view=edit_modal(candidate.id, candidate.title, candidate.rationale, notes.area, notes.type),
        )
    except SlackApiError:
        logger.warning("Failed to open edit modal", extra=log_context, exc_info=True)


async def handle_block_actions(
    session: AsyncSession, payload: dict, background_tasks: BackgroundTasks
) -> Response:
    actions = payload.get("actions") or []
    if not actions:
        return _ack()
    action_id = actions[0].get("action_id")
    candidate_id = actions[0].get("value")
    if not candidate_id:
        return _ack()

    if action_id == EDIT_ACTION_ID:
        await open_edit_modal(session, payload, candidate_id)
    elif action_id in BUTTON_ACTIONS:
        background_tasks.add_task(
            apply_button_review,
            interaction_team_id(payload),
            candidate_id,
            BUTTON_ACTIONS[action_id],
            interaction_actor(payload),
        )
    return _ack()


def _modal_errors(message: str) -> JSONResponse:
    return JSONResponse({"response_action": "errors", "errors": {"title_block": message}})


async def handle_view_submission(session: AsyncSession, payload: dict) -> Response:
    """Apply the edit modal before responding so Slack can show errors inline.

    The modal only closes once the candidate is ``edited``. A candidate that
    was reviewed elsewhere in the meantime keeps the modal open with an error.
    """
    view = payload.get("view") or {}
    if view.get("callback_id") != EDIT_MODAL_CALLBACK_ID:
        return _ack()

    edits = modal_edits(view)
    if not edits.title:
        return _modal_errors("Title is required")

    team_id = interaction_team_id(payload)
    candidate_id = view.get("private_metadata", "")
    log_context = {"team_id": team_id, "candidate_id": candidate_id, "action": ReviewAction.EDIT.value}
    workspace = await get_workspace_by_team(session, team_id)
    if workspace is None:
        logger.warning("Interaction from unknown workspace", extra=log_context)
        return _ack()

    try:
        await review_one(
            session,
            workspace.organization_id,
            candidate_id,
            ReviewAction.EDIT,
            edits,
            reviewer=interaction_actor(payload),
        )
    except InvalidStateError:
        logger.info("Candidate already reviewed", extra=log_context)
        return _modal_errors("This decision has already been reviewed")
    except NotFoundError:
        logger.warning("Edit submitted for unknown candidate", extra=log_context)
        return _modal_errors("This decision no longer exists")
    except Exception:
        logger.error("Slack edit failed", extra=log_context, exc_info=True)
        return _modal_errors("Could not save the edit, please try again")
    return _ack()


async def handle_interaction(
    session: AsyncSession, payload: dict, background_tasks: BackgroundTasks
) -> Response:
    """Dispatch an interaction payload by type.

    - block_actions: confirm / ignore in the background, edit opens the modal
    - view_submission: validate and apply the edit modal before responding
    - view_closed and anything else: acknowledge
    """
    payload_type = payload.get("type")
    if payload_type == "block_actions":
        return await handle_block_actions(session, payload, background_tasks)
    if payload_type == "view_submission":
        return await handle_view_submission(session, payload)
    if payload_type != "view_closed":
        logger.warning("Unknown interaction payload type", extra={"payload_type": payload_type})
    return _ack()
