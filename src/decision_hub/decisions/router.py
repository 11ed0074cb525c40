"""First-party decision logging API."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.auth import Principal, get_principal
from decision_hub.db.engine import get_session
from decision_hub.decisions.commit import log_decision
from decision_hub.models.decisions import DecisionCreate, DecisionRead

router = APIRouter(prefix="/api/decisions", tags=["decisions"])


@router.post("", response_model=DecisionRead, status_code=201)
async def create_decision(
    body: DecisionCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> DecisionRead:
    """Log a decision. It is stored even if embedding fails; the backfill job fills it in later."""
    decision = await log_decision(session, principal.organization_id, body)
    return DecisionRead.model_validate(decision)
