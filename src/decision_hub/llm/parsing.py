"""Lenient JSON parsing for model output."""

import json
import re
from typing import TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


def strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences (```json ... ```) and surrounding whitespace."""
    cleaned = raw_output.strip()
    match = _FENCE_RE.search(cleaned)
    if match:
        return match.group(1).strip()
    return cleaned


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """Parse model output as JSON and validate it against a pydantic model.

    Raises:
        json.JSONDecodeError: If the text is not JSON after fence stripping.
        pydantic.ValidationError: If the JSON doesn't match the model.
    """
    return model.model_validate(json.loads(strip_llm_fences(raw_output)))
