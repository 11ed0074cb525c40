"""Review API: list, inspect, and transition extraction candidates."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.auth import Principal, get_principal
from decision_hub.db.engine import get_session
from decision_hub.models.candidates import (
    BulkReviewRequest,
    BulkReviewResult,
    CandidateList,
    CandidateRead,
    ReviewRequest,
    ReviewResult,
)
from decision_hub.review.service import get_candidate, list_candidates, review_bulk, review_one

router = APIRouter(prefix="/api/review", tags=["review"])


@router.get("", response_model=CandidateList)
async def list_review_items(
    status: str = Query(default="pending"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> CandidateList:
    """List candidates by status (``all`` or one state), newest first."""
    items, total = await list_candidates(session, principal.organization_id, status, offset, limit)
    return CandidateList(items=[CandidateRead.model_validate(c) for c in items], total=total)


@router.post("/bulk", response_model=BulkReviewResult)
async def bulk_review(
    body: BulkReviewRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> BulkReviewResult:
    return await review_bulk(session, principal.organization_id, body.ids, body.action, principal.reviewer)


@router.get("/{candidate_id}", response_model=CandidateRead)
async def get_review_item(
    candidate_id: str,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> CandidateRead:
    return CandidateRead.model_validate(await get_candidate(session, principal.organization_id, candidate_id))


@router.patch("/{candidate_id}", response_model=ReviewResult)
async def review_item(
    candidate_id: str,
    body: ReviewRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
) -> ReviewResult:
    """Confirm, edit, or dismiss one candidate."""
    return await review_one(
        session,
        principal.organization_id,
        candidate_id,
        body.action,
        body.edits,
        principal.reviewer,
    )
