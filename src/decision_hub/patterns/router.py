"""Pattern discovery API."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.auth import Principal, get_principal
from decision_hub.db.engine import get_session
from decision_hub.models.patterns import DiscoveryRequest, DiscoveryResult, PatternRead
from decision_hub.patterns.mining import discover, list_patterns

router = APIRouter(prefix="/api/patterns", tags=["patterns"])


@router.post("", response_model=DiscoveryResult)
async def discover_patterns(
    body: DiscoveryRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> DiscoveryResult:
    return await discover(
        session,
        principal.organization_id,
        min_sample_size=body.min_sample_size,
        confidence_threshold=body.confidence_threshold,
    )


@router.get("", response_model=list[PatternRead])
async def get_patterns(
    type: str | None = Query(default=None),
    active: bool = Query(default=True),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> list[PatternRead]:
    """List stored patterns, highest confidence first."""
    patterns = await list_patterns(session, principal.organization_id, type, active)
    return [PatternRead.model_validate(p) for p in patterns]
