"""Review state machine for extraction candidates.

``pending`` moves to exactly one of ``confirmed``, ``edited`` or ``dismissed``;
all three are terminal. Transitions are optimistic: the candidate row is
updated with ``WHERE status = 'pending'`` and a miss (already reviewed, or a
concurrent reviewer got there first) raises ``InvalidStateError`` after
rolling back the Decision staged in the same transaction.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.db.engine import utcnow
from decision_hub.db.models import ExtractionCandidate
from decision_hub.decisions.commit import commit_candidate, effective_fields
from decision_hub.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from decision_hub.models.candidates import (
    BulkReviewResult,
    CandidateEdits,
    CandidateStatus,
    ReviewAction,
    ReviewResult,
)
from decision_hub.slack.client import get_slack_client
from decision_hub.slack.notifier import update_review_message
from decision_hub.slack.workspaces import get_workspace_for_org

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
BULK_ACTIONS = (ReviewAction.CONFIRM, ReviewAction.DISMISS)


def parse_action(action: str | ReviewAction, allowed: tuple[ReviewAction, ...] = tuple(ReviewAction)) -> ReviewAction:
    try:
        parsed = ReviewAction(action)
    except ValueError:
        parsed = None
    if parsed not in allowed:
        names = ", ".join(a.value for a in allowed)
        raise InvalidArgumentError(f"Invalid action {action!r}. Must be one of: {names}.")
    return parsed


async def list_candidates(
    session: AsyncSession,
    organization_id: str,
    status: str = "all",
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[ExtractionCandidate], int]:
    """Return one page of candidates (newest first) and the total matching count."""
    conditions = [ExtractionCandidate.organization_id == organization_id]
    if status != "all":
        try:
            conditions.append(ExtractionCandidate.status == CandidateStatus(status))
        except ValueError as exc:
            raise InvalidArgumentError(f"Invalid status filter {status!r}") from exc

    offset = max(0, offset)
    limit = max(1, min(MAX_PAGE_SIZE, limit))

    total = await session.scalar(select(func.count()).select_from(ExtractionCandidate).where(*conditions))
    items = await session.scalars(
        select(ExtractionCandidate)
        .where(*conditions)
        .order_by(ExtractionCandidate.extracted_at.desc(), ExtractionCandidate.id)
        .offset(offset)
        .limit(limit)
    )
    return list(items.all()), total or 0


async def get_candidate(session: AsyncSession, organization_id: str, candidate_id: str) -> ExtractionCandidate:
    candidate = await session.scalar(
        select(ExtractionCandidate).where(
            ExtractionCandidate.id == candidate_id,
            ExtractionCandidate.organization_id == organization_id,
        )
    )
    if candidate is None:
        raise NotFoundError(f"Extracted decision {candidate_id} not found")
    return candidate


async def _transition(
    session: AsyncSession,
    candidate: ExtractionCandidate,
    action: ReviewAction,
    edits: CandidateEdits | None,
    reviewer: str,
) -> str | None:
    """Stage the Decision (if any) and conditionally move the candidate out of pending.

    Commits on success and returns the decision id. Rolls back and raises
    ``InvalidStateError`` if the candidate was no longer pending.
    """
    values: dict = {
        "status": action.target_status,
        "reviewed_by": reviewer,
        "reviewed_at": utcnow(),
    }
    decision_id = None

    if action != ReviewAction.DISMISS:
        decision = await commit_candidate(session, candidate, edits)
        decision_id = decision.id
        values["decision_id"] = decision_id

    if action == ReviewAction.EDIT and edits is not None:
        values.update(effective_fields(candidate, edits))
        labels = {k: v for k, v in (("area", edits.area), ("type", edits.type)) if v}
        if labels:
            notes = candidate.notes.model_copy(update=labels)
            values["raw_extraction"] = notes.model_dump(mode="json", exclude_none=True)

    result = await session.execute(
        update(ExtractionCandidate)
        .where(
            ExtractionCandidate.id == candidate.id,
            ExtractionCandidate.status == CandidateStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise InvalidStateError(f"Extracted decision {candidate.id} has already been reviewed")

    await session.commit()
    await session.refresh(candidate)
    return decision_id


async def _notify_reviewed(session: AsyncSession, candidate: ExtractionCandidate) -> None:
    """Edit the candidate's confirmation DM in place to show its terminal state.

    Runs after the transition has committed, so nothing raised here may
    escape: network errors and timeouts from the Slack client are logged.
    """
    if not candidate.notes.has_dm_reference:
        return
    try:
        workspace = await get_workspace_for_org(session, candidate.organization_id)
        if workspace is None:
            return
        client = await get_slack_client(workspace.bot_token)
        await update_review_message(
            client, candidate.notes, candidate.title, candidate.status, candidate.reviewed_by
        )
    except Exception:
        logger.warning(
            "Failed to update confirmation DM after review",
            extra={"organization_id": candidate.organization_id, "candidate_id": candidate.id},
            exc_info=True,
        )


async def review_one(
    session: AsyncSession,
    organization_id: str,
    candidate_id: str,
    action: str | ReviewAction,
    edits: CandidateEdits | None = None,
    reviewer: str = "system",
) -> ReviewResult:
    """Apply one review action to a pending candidate.

    ``confirm`` and ``edit`` commit a Decision built from the candidate with
    any edits applied; only ``edit`` writes the edited fields back onto the
    candidate. ``dismiss`` produces no Decision.

    Raises:
        InvalidArgumentError: Unknown action.
        NotFoundError: No such candidate in this organization.
        InvalidStateError: The candidate is not pending, or a concurrent review won.
    """
    review_action = parse_action(action)
    candidate = await get_candidate(session, organization_id, candidate_id)
    if candidate.status != CandidateStatus.PENDING:
        raise InvalidStateError(f"Extracted decision {candidate_id} is already {candidate.status.value}")

    decision_id = await _transition(session, candidate, review_action, edits, reviewer)
    logger.info(
        "Candidate reviewed",
        extra={
            "organization_id": organization_id,
            "candidate_id": candidate_id,
            "action": review_action.value,
            "decision_id": decision_id,
            "reviewer": reviewer,
        },
    )

    await _notify_reviewed(session, candidate)
    return ReviewResult(status=candidate.status, decision_id=decision_id)


async def review_bulk(
    session: AsyncSession,
    organization_id: str,
    ids: list[str],
    action: str | ReviewAction,
    reviewer: str = "system",
) -> BulkReviewResult:
    """Confirm or dismiss many pending candidates.

    Dismissal is one batched update. Confirmation commits each candidate in
    its own transaction; a failing item is logged, rolled back, and left
    pending while the rest proceed.

    Raises:
        InvalidArgumentError: Unknown action, ``edit``, or an empty id list.
        NotFoundError: None of the ids is a pending candidate of this organization.
    """
    review_action = parse_action(action, BULK_ACTIONS)
    if not ids:
        raise InvalidArgumentError("ids must be a non-empty array.")

    pending_ids = list(
        (
            await session.scalars(
                select(ExtractionCandidate.id).where(
                    ExtractionCandidate.organization_id == organization_id,
                    ExtractionCandidate.id.in_(ids),
                    ExtractionCandidate.status == CandidateStatus.PENDING,
                )
            )
        ).all()
    )
    if not pending_ids:
        raise NotFoundError("No matching pending decisions found.")

    if review_action == ReviewAction.DISMISS:
        result = await session.execute(
            update(ExtractionCandidate)
            .where(
                ExtractionCandidate.id.in_(pending_ids),
                ExtractionCandidate.status == CandidateStatus.PENDING,
            )
            .values(status=CandidateStatus.DISMISSED, reviewed_by=reviewer, reviewed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        logger.info(
            "Bulk dismiss complete",
            extra={"organization_id": organization_id, "processed": result.rowcount},
        )
        for candidate_id in pending_ids:
            candidate = await session.get(ExtractionCandidate, candidate_id, populate_existing=True)
            await _notify_reviewed(session, candidate)
        return BulkReviewResult(processed=result.rowcount)

    decision_ids: list[str] = []
    for candidate_id in pending_ids:
        # populate_existing: a rollback on a previous item expired everything
        candidate = await session.get(ExtractionCandidate, candidate_id, populate_existing=True)
        try:
            decision_id = await _transition(session, candidate, review_action, None, reviewer)
        except Exception:
            await session.rollback()
            logger.error(
                "Bulk confirm failed for candidate",
                extra={"organization_id": organization_id, "candidate_id": candidate_id},
                exc_info=True,
            )
            continue
        decision_ids.append(decision_id)
        await _notify_reviewed(session, candidate)

    logger.info(
        "Bulk confirm complete",
        extra={"organization_id": organization_id, "processed": len(decision_ids), "requested": len(ids)},
    )
    return BulkReviewResult(processed=len(decision_ids), decision_ids=decision_ids)
