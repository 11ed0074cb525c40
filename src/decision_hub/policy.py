"""Tunable thresholds, resolved per tenant.

Defaults come from ``Settings``; an organization may override any of them in
its ``policy`` JSON column, e.g. ``{"extraction_confidence_threshold": 0.7}``.
Unknown or out-of-range overrides are ignored with a warning.
"""

import logging

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.config import get_settings
from decision_hub.db.models import Organization

logger = logging.getLogger(__name__)


class TenantPolicy(BaseModel):
    extraction_confidence_threshold: float = Field(ge=0.0, le=1.0)
    thread_min_messages: int = Field(ge=1)
    rag_similarity_threshold: float = Field(ge=0.0, le=1.0)
    rag_default_limit: int = Field(ge=1, le=20)
    pattern_min_sample_size: int = Field(default=5, ge=1)
    pattern_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)


def default_policy() -> TenantPolicy:
    settings = get_settings()
    return TenantPolicy(
        extraction_confidence_threshold=settings.extraction_confidence_threshold,
        thread_min_messages=settings.thread_min_messages,
        rag_similarity_threshold=settings.rag_similarity_threshold,
        rag_default_limit=settings.rag_default_limit,
    )


def merge_policy(overrides: dict | None) -> TenantPolicy:
    base = default_policy()
    if not overrides:
        return base
    known = {k: v for k, v in overrides.items() if k in TenantPolicy.model_fields}
    try:
        return TenantPolicy.model_validate({**base.model_dump(), **known})
    except ValidationError:
        logger.warning("Ignoring invalid tenant policy overrides", extra={"overrides": overrides})
        return base


async def resolve_policy(session: AsyncSession, organization_id: str) -> TenantPolicy:
    org = await session.get(Organization, organization_id)
    return merge_policy(org.policy if org is not None else None)
