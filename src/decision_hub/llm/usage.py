"""Token usage extraction, cost calculation, and structured usage logging.

Prices are per 1M tokens and only cover the default models; a tenant-chosen
model without a price entry is logged with ``cost_usd = 0``.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# model -> (input USD per 1M tokens, output USD per 1M tokens)
PRICES_PER_MILLION: dict[str, tuple[float, float]] = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "claude-3-5-haiku-20241022": (0.80, 4.00),
    "claude-sonnet-4-20250514": (3.00, 15.00),
    "gemini-2.5-flash": (0.30, 2.50),
    "gemini-2.5-pro": (1.25, 10.00),
    "text-embedding-3-small": (0.02, 0.0),
}


@dataclass
class TokenUsage:
    """Token counts and calculated cost for a single provider call."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost_usd: float


def calculate_usage(model: str, prompt_tokens: int, completion_tokens: int) -> TokenUsage:
    input_price, output_price = PRICES_PER_MILLION.get(model, (0.0, 0.0))
    cost_usd = (prompt_tokens * input_price + completion_tokens * output_price) / 1_000_000
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
        cost_usd=cost_usd,
    )


def extract_usage(provider: str, model: str, response: object) -> TokenUsage:
    """Read token counts from an OpenAI, Anthropic, or Gemini response.

    Missing usage blocks and None counts default to 0.
    """
    if provider == "gemini":
        metadata = getattr(response, "usage_metadata", None)
        prompt_tokens = getattr(metadata, "prompt_token_count", 0) or 0
        completion_tokens = getattr(metadata, "candidates_token_count", 0) or 0
    elif provider == "anthropic":
        usage = getattr(response, "usage", None)
        prompt_tokens = getattr(usage, "input_tokens", 0) or 0
        completion_tokens = getattr(usage, "output_tokens", 0) or 0
    else:
        usage = getattr(response, "usage", None)
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0
    return calculate_usage(model, prompt_tokens, completion_tokens)


def log_usage(purpose: str, provider: str, model: str, usage: TokenUsage) -> None:
    """Emit one INFO log with all usage fields as structured extra data."""
    logger.info(
        "LLM call complete",
        extra={
            "purpose": purpose,
            "provider": provider,
            "model": model,
            "prompt_tokens": usage.prompt_tokens,
            "completion_tokens": usage.completion_tokens,
            "total_tokens": usage.total_tokens,
            "cost_usd": round(usage.cost_usd, 6),
        },
    )
