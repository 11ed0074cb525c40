"""Extraction candidate lifecycle models: states, actions, edits, and side-channel notes."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CandidateStatus(str, Enum):
    """Review state of an extraction candidate. Every non-pending state is terminal."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    EDITED = "edited"
    DISMISSED = "dismissed"


class ReviewAction(str, Enum):
    """Reviewer actions and the terminal state each one lands in."""

    CONFIRM = "confirm"
    EDIT = "edit"
    DISMISS = "dismiss"

    @property
    def target_status(self) -> CandidateStatus:
        return {
            ReviewAction.CONFIRM: CandidateStatus.CONFIRMED,
            ReviewAction.EDIT: CandidateStatus.EDITED,
            ReviewAction.DISMISS: CandidateStatus.DISMISSED,
        }[self]


class Alternative(BaseModel):
    """An option that was considered and not chosen."""

    option: str
    reason_rejected: str | None = None


class CandidateEdits(BaseModel):
    """Reviewer-supplied field overrides applied before commit.

    ``area`` and ``type`` come only from the Slack edit modal and are kept in
    the candidate's side-channel notes, not in its core fields.
    """

    title: str | None = None
    rationale: str | None = None
    participants: list[str] | None = None
    alternatives: list[Alternative] | None = None
    area: str | None = None
    type: str | None = None


class CandidateNotes(BaseModel):
    """Typed view over the candidate's ``raw_extraction`` diagnostic blob.

    Holds the raw LLM outputs plus references needed later, such as the
    confirmation DM that gets edited in place after review.
    """

    model_config = ConfigDict(extra="allow")

    classification: dict | None = None
    extraction: dict | None = None
    message_count: int | None = None
    channel_id: str | None = None
    dm_channel_id: str | None = None
    dm_message_ts: str | None = None
    area: str | None = None
    type: str | None = None

    @property
    def has_dm_reference(self) -> bool:
        return bool(self.dm_channel_id and self.dm_message_ts)


class CandidateRead(BaseModel):
    """Serialized candidate returned by the review API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    source_type: str
    source_channel: str
    source_thread_ts: str | None = None
    source_message_ids: list[str] = []
    title: str
    rationale: str | None = None
    participants: list[str] = []
    alternatives: list[Alternative] = []
    confidence: float
    raw_extraction: dict = {}
    status: CandidateStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    decision_id: str | None = None
    extracted_at: datetime
    source_timestamp: datetime | None = None


class ReviewRequest(BaseModel):
    """Body of ``PATCH /api/review/{id}``. ``action`` stays a plain string so
    an unknown value is rejected by the state machine, not by schema parsing."""

    action: str
    edits: CandidateEdits | None = None


class BulkReviewRequest(BaseModel):
    """Body of ``POST /api/review/bulk``."""

    action: str
    ids: list[str] = Field(default_factory=list)


class ReviewResult(BaseModel):
    """Outcome of a single review transition."""

    success: bool = True
    status: CandidateStatus
    decision_id: str | None = None


class BulkReviewResult(BaseModel):
    """Outcome of a bulk review. Partial success is reported, not raised."""

    success: bool = True
    processed: int
    decision_ids: list[str] = []


class CandidateList(BaseModel):
    """Page of candidates with the total matching count."""

    items: list[CandidateRead]
    total: int
