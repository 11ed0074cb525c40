"""Question-answering models."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

MAX_ASK_LIMIT = 20


class AskRequest(BaseModel):
    """Body of ``POST /api/ask``. ``limit`` is clamped into 1..20 rather than rejected."""

    question: str = Field(min_length=1)
    limit: int | None = None

    @field_validator("limit", mode="after")
    @classmethod
    def clamp_limit(cls, v: int | None) -> int | None:
        if v is None:
            return None
        return max(1, min(MAX_ASK_LIMIT, v))


class AskSource(BaseModel):
    """A decision cited in an answer, with its similarity to the question."""

    decision_id: str
    action_taken: str
    reasoning: str | None = None
    participants: list[str] = []
    similarity: float
    timestamp: datetime
    source_url: str | None = None


class AskResult(BaseModel):
    answer: str
    sources: list[AskSource] = []


class AskResponse(AskResult):
    question: str
