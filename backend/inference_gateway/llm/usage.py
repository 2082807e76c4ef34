"""
Token usage accounting.

Providers report token counts inconsistently (Anthropic and Meta do, Cohere
does not). When a count is missing we fall back to the 4-chars-per-token
heuristic. It is an approximation only and is not expected to match any real
tokenizer.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any

CHARS_PER_TOKEN_EST = 4


@dataclass(frozen=True)
class TokenUsage:
    """Input/output token counts; total is always derived, never supplied."""
    input_tokens:  int
    output_tokens: int
    total_tokens:  int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_tokens", self.input_tokens + self.output_tokens)


def estimate_tokens(text: str) -> int:
    """ceil(len(text) / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN_EST)


def estimate_input_tokens(payload: dict[str, Any]) -> int:
    """Estimate prompt tokens from the serialized request body."""
    return estimate_tokens(json.dumps(payload))


def estimate_output_tokens(response_body: Any) -> int:
    """Estimate completion tokens by joining every top-level response value."""
    if isinstance(response_body, dict):
        text = " ".join(str(value) for value in response_body.values())
    else:
        text = str(response_body or "")
    return estimate_tokens(text)
