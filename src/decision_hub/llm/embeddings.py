"""Text embeddings for semantic search.

Embeddings are resolved from application settings, not per tenant: every
stored vector must come from the same model to be comparable. Anthropic has
no embedding API, so the choice is OpenAI or Gemini.
"""

import logging

from google.genai import types
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from decision_hub.config import get_settings
from decision_hub.db.models import EMBEDDING_DIMENSIONS
from decision_hub.errors import UpstreamError
from decision_hub.llm.client import PROVIDER_ERRORS, _is_retryable, get_provider_client
from decision_hub.llm.usage import calculate_usage, log_usage

logger = logging.getLogger(__name__)


@retry(
    retry=retry_if_exception(_is_retryable),
    wait=wait_exponential_jitter(initial=1, max=30, jitter=2),
    stop=stop_after_attempt(4),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _embed(provider: str, model: str, text: str) -> list[float]:
    settings = get_settings()
    if provider == "gemini":
        client = get_provider_client("gemini", settings.gemini_api_key)
        response = await client.aio.models.embed_content(
            model=model,
            contents=text,
            config=types.EmbedContentConfig(output_dimensionality=EMBEDDING_DIMENSIONS),
        )
        return list(response.embeddings[0].values)

    client = get_provider_client("openai", settings.openai_api_key)
    response = await client.embeddings.create(model=model, input=text)
    prompt_tokens = getattr(response.usage, "prompt_tokens", 0) or 0
    log_usage("embedding", "openai", model, calculate_usage(model, prompt_tokens, 0))
    return list(response.data[0].embedding)


async def embed_text(text: str) -> list[float]:
    """Embed text into a 1536-dimension vector.

    Raises:
        UpstreamError: If the provider fails or returns the wrong dimensionality.
    """
    settings = get_settings()
    provider = settings.embedding_provider
    try:
        vector = await _embed(provider, settings.embedding_model, text)
    except PROVIDER_ERRORS as exc:
        raise UpstreamError(f"{provider} embedding call failed: {exc}") from exc

    if len(vector) != EMBEDDING_DIMENSIONS:
        raise UpstreamError(
            f"{provider} returned a {len(vector)}-dimension embedding, expected {EMBEDDING_DIMENSIONS}"
        )
    return vector
