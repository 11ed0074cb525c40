"""SQLAlchemy table mappings for the decision pipeline.

Every table is partitioned by ``organization_id``. Row-level tenant isolation
is enforced by the database, not here.
"""

import enum
from datetime import datetime
from typing import Any, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from decision_hub.db.engine import Base, generate_uuid, utcnow
from decision_hub.models.candidates import CandidateNotes, CandidateStatus
from decision_hub.models.patterns import PatternType

EMBEDDING_DIMENSIONS = 1536

# SQLite stores vectors as JSON arrays; a missing vector must be SQL NULL there too.
EMBEDDING_COLUMN_TYPE = Vector(EMBEDDING_DIMENSIONS).with_variant(JSON(none_as_null=True), "sqlite")


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    """Store enum *values* (not names) as plain VARCHAR."""
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
        length=32,
    )


class Organization(Base):
    """Tenant row. Managed elsewhere; read here for per-tenant LLM config and policy."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255))
    llm_provider: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    llm_config: Mapped[dict] = mapped_column(JSON, default=dict)
    policy: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class SlackWorkspace(Base):
    """Installed Slack workspace. Maps an event's ``team_id`` to its tenant and bot token."""

    __tablename__ = "slack_workspaces"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id"), index=True)
    team_id: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    bot_token: Mapped[str] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class SlackChannel(Base):
    """A channel selected for monitoring."""

    __tablename__ = "slack_channels"
    __table_args__ = (UniqueConstraint("organization_id", "channel_id", name="uq_slack_channel"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id"), index=True)
    channel_id: Mapped[str] = mapped_column(String(32))
    channel_name: Mapped[str] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class RawMessage(Base):
    """One ingested Slack message. Immutable once written."""

    __tablename__ = "raw_messages"
    __table_args__ = (
        UniqueConstraint("organization_id", "channel_id", "message_ts", name="uq_raw_message"),
        Index("ix_raw_messages_thread", "organization_id", "channel_id", "thread_ts"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id"))
    channel_id: Mapped[str] = mapped_column(String(32))
    message_ts: Mapped[str] = mapped_column(String(32))  # Slack ts, e.g. "1234567890.123456"
    thread_ts: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    user_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    text: Mapped[str] = mapped_column(Text, default="")
    raw_payload: Mapped[dict] = mapped_column(JSON, default=dict)
    ingested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ExtractionCandidate(Base):
    """A detected decision awaiting (or past) human review."""

    __tablename__ = "extracted_decisions"
    __table_args__ = (
        # At most one non-dismissed candidate per thread. NULL thread_ts rows
        # (single-message candidates) never collide.
        Index(
            "uq_live_candidate_per_thread",
            "organization_id",
            "source_channel",
            "source_thread_ts",
            unique=True,
            postgresql_where=text("status <> 'dismissed'"),
            sqlite_where=text("status <> 'dismissed'"),
        ),
        Index("ix_extracted_decisions_status", "organization_id", "status", "extracted_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id"))
    source_type: Mapped[str] = mapped_column(String(32), default="slack")
    source_channel: Mapped[str] = mapped_column(String(255))
    source_thread_ts: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    source_message_ids: Mapped[list] = mapped_column(JSON, default=list)
    title: Mapped[str] = mapped_column(String(500))
    rationale: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    participants: Mapped[list] = mapped_column(JSON, default=list)
    alternatives: Mapped[list] = mapped_column(JSON, default=list)
    confidence: Mapped[float] = mapped_column(Float)
    raw_extraction: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[CandidateStatus] = mapped_column(
        _enum_column(CandidateStatus), default=CandidateStatus.PENDING
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    extracted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    source_timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def notes(self) -> CandidateNotes:
        return CandidateNotes.model_validate(self.raw_extraction or {})

    def update_notes(self, **changes: Any) -> None:
        """Merge changes into the side-channel notes (reassigns so the ORM sees it)."""
        merged = {**(self.raw_extraction or {}), **changes}
        self.raw_extraction = CandidateNotes.model_validate(merged).model_dump(
            mode="json", exclude_none=True
        )


class Decision(Base):
    """Canonical decision record. Append-mostly; ``embedding`` may be filled later."""

    __tablename__ = "decisions"
    __table_args__ = (Index("ix_decisions_org_timestamp", "organization_id", "timestamp"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id"))
    agent_id: Mapped[str] = mapped_column(String(255))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    action_taken: Mapped[str] = mapped_column(Text)
    confidence: Mapped[float] = mapped_column(Float)
    context_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)
    reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    outcome: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sources: Mapped[list] = mapped_column(JSON, default=list)
    embedding: Mapped[Optional[Any]] = mapped_column(EMBEDDING_COLUMN_TYPE, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def has_embedding(self) -> bool:
        # pgvector returns numpy arrays, which have no truth value
        return self.embedding is not None


class Pattern(Base):
    """Derived, recomputable pattern. Ids are deterministic so discovery upserts."""

    __tablename__ = "patterns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id"), index=True)
    name: Mapped[str] = mapped_column(String(500))
    description: Mapped[str] = mapped_column(Text, default="")
    pattern_type: Mapped[PatternType] = mapped_column(_enum_column(PatternType))
    conditions: Mapped[list] = mapped_column(JSON, default=list)
    outcomes: Mapped[list] = mapped_column(JSON, default=list)
    confidence: Mapped[float] = mapped_column(Float)
    sample_size: Mapped[int] = mapped_column(default=0)
    decision_ids: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
