"""Pattern mining models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PatternType(str, Enum):
    CORRELATION = "correlation"
    SEQUENCE = "sequence"
    ANOMALY = "anomaly"
    SUCCESS_FACTOR = "success_factor"


class PatternCondition(BaseModel):
    """A predicate over decision fields, e.g. ``confidence less_than 0.5``."""

    field: str
    operator: str
    value: Any


class PatternOutcome(BaseModel):
    description: str
    probability: float


class PatternRead(BaseModel):
    """A discovered pattern as stored and served."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    name: str
    description: str = ""
    pattern_type: PatternType
    conditions: list[PatternCondition] = []
    outcomes: list[PatternOutcome] = []
    confidence: float
    sample_size: int
    decision_ids: list[str] = []
    is_active: bool = True
    updated_at: datetime | None = None


class DiscoveryRequest(BaseModel):
    """Body of ``POST /api/patterns``; omitted fields fall back to configuration."""

    min_sample_size: int | None = Field(default=None, ge=1)
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class DiscoveryResult(BaseModel):
    patterns: list[PatternRead]
    analyzed_decisions: int
    discovery_timestamp: datetime
