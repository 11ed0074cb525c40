"""Tests for provider dispatch, retry classification, and error mapping."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest
from google.genai.errors import ClientError, ServerError
from tenacity import wait_none

from decision_hub.errors import UpstreamError
from decision_hub.llm.client import _complete, _is_retryable, chat_completion
from decision_hub.llm.config import LLMConfig, ModelTier

REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat")


def _make_config(provider: str = "openai") -> LLMConfig:
    return LLMConfig(provider=provider, api_key="sk-test", fast_model="fast-model", smart_model="smart-model")


def _openai_status_error(cls: type, status: int) -> Exception:
    """Build an openai status error the way the SDK does from an HTTP response."""
    return cls("error", response=httpx.Response(status, request=REQUEST), body=None)


def _genai_error(cls: type, code: int) -> Exception:
    return cls(code, {"error": {"code": code, "message": "error", "status": "ERROR"}})


def _openai_response(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=100, completion_tokens=20),
    )


@pytest.fixture
def fast_retry():
    """Retry without sleeping between attempts."""
    with patch("decision_hub.llm.client._complete", _complete.retry_with(wait=wait_none())):
        yield


# -- _is_retryable tests --


@pytest.mark.parametrize(
    "error",
    [
        _genai_error(ServerError, 500),
        _genai_error(ClientError, 429),
        _openai_status_error(openai.RateLimitError, 429),
        _openai_status_error(openai.InternalServerError, 503),
        openai.APIConnectionError(request=REQUEST),
        _openai_status_error(anthropic.RateLimitError, 429),
        anthropic.APIConnectionError(request=REQUEST),
    ],
)
def test_transient_errors_retryable(error: Exception):
    assert _is_retryable(error) is True


@pytest.mark.parametrize(
    "error",
    [
        _genai_error(ClientError, 400),
        _genai_error(ClientError, 401),
        _openai_status_error(openai.BadRequestError, 400),
        _openai_status_error(openai.AuthenticationError, 401),
        _openai_status_error(anthropic.BadRequestError, 400),
        ValueError("not a provider error"),
    ],
)
def test_permanent_errors_not_retryable(error: Exception):
    assert _is_retryable(error) is False


# -- chat_completion tests --


@patch("decision_hub.llm.client.get_provider_client")
async def test_openai_completion(mock_get_client: MagicMock):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_openai_response('{"is_decision": true}'))
    mock_get_client.return_value = client

    result = await chat_completion(_make_config(), "system", "user", json_mode=True, purpose="classify")

    assert result.text == '{"is_decision": true}'
    assert result.model == "fast-model"
    assert result.usage.total_tokens == 120
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": "system"}


@patch("decision_hub.llm.client.get_provider_client")
async def test_smart_tier_uses_smart_model(mock_get_client: MagicMock):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_openai_response("answer"))
    mock_get_client.return_value = client

    result = await chat_completion(_make_config(), "system", "user", tier=ModelTier.SMART)

    assert result.model == "smart-model"
    assert "response_format" not in client.chat.completions.create.await_args.kwargs


@patch("decision_hub.llm.client.get_provider_client")
async def test_anthropic_joins_text_blocks(mock_get_client: MagicMock):
    client = MagicMock()
    client.messages.create = AsyncMock(
        return_value=SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"title": '),
                SimpleNamespace(type="tool_use", text="ignored"),
                SimpleNamespace(type="text", text='"Adopt Kafka"}'),
            ],
            usage=SimpleNamespace(input_tokens=50, output_tokens=10),
        )
    )
    mock_get_client.return_value = client

    result = await chat_completion(_make_config("anthropic"), "system", "user")

    assert result.text == '{"title": "Adopt Kafka"}'
    assert result.usage.prompt_tokens == 50
    assert client.messages.create.await_args.kwargs["system"] == "system"


@patch("decision_hub.llm.client.get_provider_client")
async def test_gemini_completion(mock_get_client: MagicMock):
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(
            text="answer",
            usage_metadata=SimpleNamespace(prompt_token_count=7, candidates_token_count=3),
        )
    )
    mock_get_client.return_value = client

    result = await chat_completion(_make_config("gemini"), "system", "user")

    assert result.text == "answer"
    assert result.usage.total_tokens == 10


@patch("decision_hub.llm.client.get_provider_client")
async def test_permanent_error_not_retried(mock_get_client: MagicMock):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=_openai_status_error(openai.AuthenticationError, 401)
    )
    mock_get_client.return_value = client

    with pytest.raises(UpstreamError, match="openai classify call failed"):
        await chat_completion(_make_config(), "system", "user", purpose="classify")

    assert client.chat.completions.create.await_count == 1


@patch("decision_hub.llm.client.get_provider_client")
async def test_transient_error_retried_then_succeeds(mock_get_client: MagicMock, fast_retry):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=[_openai_status_error(openai.RateLimitError, 429), _openai_response("ok")]
    )
    mock_get_client.return_value = client

    result = await chat_completion(_make_config(), "system", "user")

    assert result.text == "ok"
    assert client.chat.completions.create.await_count == 2


@patch("decision_hub.llm.client.get_provider_client")
async def test_transient_error_exhausts_retries(mock_get_client: MagicMock, fast_retry):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=_openai_status_error(openai.InternalServerError, 500)
    )
    mock_get_client.return_value = client

    with pytest.raises(UpstreamError):
        await chat_completion(_make_config(), "system", "user")

    assert client.chat.completions.create.await_count == 4
