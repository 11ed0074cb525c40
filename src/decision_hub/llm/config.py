"""Per-tenant LLM configuration.

A tenant picks a provider and may bring its own API key and model names in
``organizations.llm_config``. Anything it leaves out falls back to
application settings and the provider's default fast/smart models.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from decision_hub.config import get_settings
from decision_hub.db.models import Organization

logger = logging.getLogger(__name__)


class ModelTier(str, Enum):
    """Cheap high-volume model vs. stronger model for user-facing answers."""

    FAST = "fast"
    SMART = "smart"


# provider -> (fast model, smart model)
DEFAULT_MODELS: dict[str, tuple[str, str]] = {
    "openai": ("gpt-4o-mini", "gpt-4o"),
    "anthropic": ("claude-3-5-haiku-20241022", "claude-sonnet-4-20250514"),
    "gemini": ("gemini-2.5-flash", "gemini-2.5-pro"),
}


@dataclass(frozen=True)
class LLMConfig:
    provider: str
    api_key: str
    fast_model: str
    smart_model: str

    def model_for(self, tier: ModelTier) -> str:
        return self.smart_model if tier == ModelTier.SMART else self.fast_model


def _settings_api_key(provider: str) -> str:
    settings = get_settings()
    return {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
        "gemini": settings.gemini_api_key,
    }[provider]


def build_llm_config(provider: str | None, overrides: dict | None = None) -> LLMConfig:
    """Merge tenant overrides over settings and provider defaults.

    Unknown providers fall back to OpenAI.
    """
    provider = (provider or get_settings().llm_provider or "openai").lower()
    if provider not in DEFAULT_MODELS:
        logger.warning("Unknown LLM provider %r, falling back to openai", provider)
        provider = "openai"

    overrides = overrides or {}
    fast_default, smart_default = DEFAULT_MODELS[provider]
    return LLMConfig(
        provider=provider,
        api_key=overrides.get("api_key") or _settings_api_key(provider),
        fast_model=overrides.get("fast_model") or fast_default,
        smart_model=overrides.get("smart_model") or smart_default,
    )


async def resolve_llm_config(session: AsyncSession, organization_id: str) -> LLMConfig:
    """Load the tenant's LLM configuration, defaulting when the organization row is missing."""
    org = await session.get(Organization, organization_id)
    if org is None:
        return build_llm_config(None)
    return build_llm_config(org.llm_provider, org.llm_config)
