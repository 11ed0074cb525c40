"""``/context`` slash command: ask the decision history a question from Slack."""

import logging

import httpx
from fastapi import BackgroundTasks
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.engine import session_scope
from decision_hub.rag.engine import ask
from decision_hub.slack.blocks import answer_blocks
from decision_hub.slack.workspaces import get_workspace_by_team

logger = logging.getLogger(__name__)

USAGE_TEXT = "Please provide a question. Usage: `/context What decisions were made about pricing?`"
NOT_CONNECTED_TEXT = (
    "This Slack workspace is not connected to Decision Hub. Please set up the integration in your dashboard."
)


def _ephemeral(text: str) -> JSONResponse:
    return JSONResponse({"response_type": "ephemeral", "text": text})


async def post_to_response_url(response_url: str, body: dict) -> None:
    """POST a message to a slash command's response_url. Errors are logged, never raised."""
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(10.0)) as client:
            response = await client.post(response_url, json=body)
            response.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to post to response_url", exc_info=True)


async def answer_question(organization_id: str, question: str, response_url: str) -> None:
    """Background task: answer via the RAG engine and post the result back to Slack."""
    try:
        async with session_scope() as session:
            result = await ask(session, organization_id, question)
    except Exception as exc:
        logger.error(
            "Failed to answer slash command",
            extra={"organization_id": organization_id, "question": question},
            exc_info=True,
        )
        await post_to_response_url(
            response_url,
            {"response_type": "ephemeral", "text": f"Sorry, I couldn't answer that question. Error: {exc}"},
        )
        return

    await post_to_response_url(
        response_url,
        {"response_type": "in_channel", "blocks": answer_blocks(question, result), "text": result.answer},
    )


async def handle_context_command(
    session: AsyncSession, form: dict[str, str], background_tasks: BackgroundTasks
) -> JSONResponse:
    question = form.get("text", "").strip()
    if not question:
        return _ephemeral(USAGE_TEXT)

    workspace = await get_workspace_by_team(session, form.get("team_id"))
    if workspace is None:
        return _ephemeral(NOT_CONNECTED_TEXT)

    response_url = form.get("response_url", "")
    if response_url:
        background_tasks.add_task(answer_question, workspace.organization_id, question, response_url)
    return _ephemeral(f'Thinking about: "{question}"...')
