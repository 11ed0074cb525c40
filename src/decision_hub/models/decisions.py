"""Canonical decision models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DecisionSource(BaseModel):
    """Evidence a decision was derived from."""

    type: str
    content: str
    weight: float = 1.0


class DecisionCreate(BaseModel):
    """Body of ``POST /api/decisions`` for first-party decision logging."""

    agent_id: str = Field(min_length=1)
    action_taken: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    context_snapshot: dict[str, Any] = {}
    reasoning: str | None = None
    outcome: str | None = None
    sources: list[DecisionSource] = []
    timestamp: datetime | None = None


class DecisionRead(BaseModel):
    """Decision as returned by the API. The embedding vector is never serialized."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    agent_id: str
    timestamp: datetime
    action_taken: str
    confidence: float
    context_snapshot: dict[str, Any] = {}
    reasoning: str | None = None
    outcome: str | None = None
    sources: list[DecisionSource] = []
    has_embedding: bool = False


class EmbeddingBackfillResult(BaseModel):
    scanned: int
    updated: int
    failed: int
