"""Question-answering API."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.auth import Principal, get_principal
from decision_hub.db.engine import get_session
from decision_hub.errors import InvalidArgumentError
from decision_hub.models.rag import AskRequest, AskResponse
from decision_hub.rag.engine import ask

router = APIRouter(prefix="/api/ask", tags=["ask"])


@router.post("", response_model=AskResponse)
async def ask_question(
    body: AskRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> AskResponse:
    question = body.question.strip()
    if not question:
        raise InvalidArgumentError("question must not be blank")
    result = await ask(session, principal.organization_id, question, limit=body.limit)
    return AskResponse(question=question, answer=result.answer, sources=result.sources)
