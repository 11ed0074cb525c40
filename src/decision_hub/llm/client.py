"""Provider clients and the single chat-completion entry point.

SDK clients are cached per (provider, api_key) since tenants may bring their
own keys. SDK-level retries are disabled (``max_retries=0``); tenacity handles
retries here to avoid double-retry behavior.
"""

import logging
from dataclasses import dataclass

import anthropic
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from decision_hub.config import get_settings
from decision_hub.errors import UpstreamError
from decision_hub.llm.config import LLMConfig, ModelTier
from decision_hub.llm.usage import TokenUsage, extract_usage, log_usage

logger = logging.getLogger(__name__)

ANTHROPIC_MAX_TOKENS = 4096

PROVIDER_ERRORS = (openai.APIError, anthropic.APIError, genai_errors.APIError)

_clients: dict[tuple[str, str], object] = {}


@dataclass
class LLMResult:
    text: str
    model: str
    usage: TokenUsage


def get_provider_client(provider: str, api_key: str) -> object:
    """Return a cached async SDK client for the provider."""
    key = (provider, api_key)
    if key not in _clients:
        timeout = get_settings().llm_timeout_seconds
        if provider == "anthropic":
            _clients[key] = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        elif provider == "gemini":
            _clients[key] = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            )
        else:
            _clients[key] = openai.AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
    return _clients[key]


def reset_clients() -> None:
    """Drop cached SDK clients. Used for testing."""
    _clients.clear()


def _is_retryable(error: BaseException) -> bool:
    """Rate limits, 5xx, and connection failures are transient; other errors are permanent."""
    if isinstance(error, (openai.RateLimitError, openai.InternalServerError, openai.APIConnectionError)):
        return True
    if isinstance(
        error, (anthropic.RateLimitError, anthropic.InternalServerError, anthropic.APIConnectionError)
    ):
        return True
    if isinstance(error, genai_errors.ServerError):
        return True
    if isinstance(error, genai_errors.ClientError) and error.code == 429:
        return True
    return False


@retry(
    retry=retry_if_exception(_is_retryable),
    wait=wait_exponential_jitter(initial=1, max=30, jitter=2),
    stop=stop_after_attempt(4),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _complete(
    config: LLMConfig,
    model: str,
    system: str,
    user: str,
    json_mode: bool,
) -> tuple[str, object]:
    """Make one provider call, returning (text, raw response)."""
    client = get_provider_client(config.provider, config.api_key)

    if config.provider == "anthropic":
        response = await client.messages.create(
            model=model,
            max_tokens=ANTHROPIC_MAX_TOKENS,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        text = "".join(block.text for block in response.content if block.type == "text")
        return text, response

    if config.provider == "gemini":
        response = await client.aio.models.generate_content(
            model=model,
            contents=user,
            config=types.GenerateContentConfig(
                system_instruction=system,
                response_mime_type="application/json" if json_mode else None,
            ),
        )
        return response.text or "", response

    extra = {"response_format": {"type": "json_object"}} if json_mode else {}
    response = await client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        **extra,
    )
    return response.choices[0].message.content or "", response


async def chat_completion(
    config: LLMConfig,
    system: str,
    user: str,
    *,
    tier: ModelTier = ModelTier.FAST,
    json_mode: bool = False,
    purpose: str = "chat",
) -> LLMResult:
    """Run one system+user completion on the tenant's provider.

    Raises:
        UpstreamError: On permanent provider errors, or transient ones after retries.
    """
    model = config.model_for(tier)
    try:
        text, response = await _complete(config, model, system, user, json_mode)
    except PROVIDER_ERRORS as exc:
        logger.error(
            "LLM call failed",
            extra={"purpose": purpose, "provider": config.provider, "model": model},
            exc_info=True,
        )
        raise UpstreamError(f"{config.provider} {purpose} call failed: {exc}") from exc

    usage = extract_usage(config.provider, model, response)
    log_usage(purpose, config.provider, model, usage)
    return LLMResult(text=text, model=model, usage=usage)
