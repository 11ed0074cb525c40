"""LLM gateway: chat completion and embeddings over OpenAI, Anthropic, and Gemini.

Public API:
    resolve_llm_config(session, organization_id) -> LLMConfig
    chat_completion(config, system, user, tier=, json_mode=) -> LLMResult
    embed_text(text) -> list[float]
"""

from decision_hub.llm.client import LLMResult, chat_completion, reset_clients
from decision_hub.llm.config import LLMConfig, ModelTier, build_llm_config, resolve_llm_config
from decision_hub.llm.embeddings import embed_text
from decision_hub.llm.parsing import parse_llm_json

__all__ = [
    "LLMConfig",
    "LLMResult",
    "ModelTier",
    "build_llm_config",
    "chat_completion",
    "embed_text",
    "parse_llm_json",
    "reset_clients",
    "resolve_llm_config",
]
