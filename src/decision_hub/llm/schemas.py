"""Response schemas for the classify and extract calls.

Both are lenient: a wrong-typed field degrades to its default rather than
failing the whole response, so only unparseable JSON counts as malformed.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from decision_hub.models.candidates import Alternative

UNTITLED_DECISION = "Untitled decision"


class Classification(BaseModel):
    """Whether a conversation contains a decision, and how sure the model is."""

    is_decision: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("is_decision", mode="before")
    @classmethod
    def coerce_truthy(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return bool(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return 0.0
        return max(0.0, min(1.0, float(v)))

    @classmethod
    def negative(cls) -> "Classification":
        return cls(is_decision=False, confidence=0.0)


class Extraction(BaseModel):
    """Structured decision fields pulled from a conversation."""

    title: str = UNTITLED_DECISION
    rationale: str = ""
    participants: list[str] = []
    alternatives: list[Alternative] = []

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            return UNTITLED_DECISION
        return v.strip()

    @field_validator("rationale", mode="before")
    @classmethod
    def default_rationale(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("participants", mode="before")
    @classmethod
    def only_string_participants(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [p for p in v if isinstance(p, str) and p]

    @field_validator("alternatives", mode="before")
    @classmethod
    def only_wellformed_alternatives(cls, v: Any) -> list[dict]:
        if not isinstance(v, list):
            return []
        return [a for a in v if isinstance(a, dict) and isinstance(a.get("option"), str)]

    @classmethod
    def untitled(cls) -> "Extraction":
        return cls()
