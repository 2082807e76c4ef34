"""
Provider Classifier — model identifier → wire dialect

Bedrock model identifiers embed the vendor name
(``anthropic.claude-3-haiku-20240307-v1:0``, ``amazon.titan-text-express-v1``,
``us.meta.llama3-1-8b-instruct-v1:0`` …). Classification is a pure,
case-insensitive substring match against an ordered marker list; the first
marker found wins and anything else is UNKNOWN.
"""

from __future__ import annotations

from enum import Enum


class ProviderFamily(str, Enum):
    """Closed set of backend request/response dialects."""
    ANTHROPIC = "anthropic"
    AMAZON    = "amazon"
    AI21      = "ai21"
    COHERE    = "cohere"
    META      = "meta"
    UNKNOWN   = "unknown"


# Order matters: an id containing two markers resolves to the earlier one.
_FAMILY_MARKERS: tuple[tuple[str, ProviderFamily], ...] = (
    ("anthropic", ProviderFamily.ANTHROPIC),
    ("amazon",    ProviderFamily.AMAZON),
    ("ai21",      ProviderFamily.AI21),
    ("cohere",    ProviderFamily.COHERE),
    ("meta",      ProviderFamily.META),
)


def classify(model_id: str) -> ProviderFamily:
    """Map a model identifier to its provider family (never raises)."""
    needle = (model_id or "").lower()
    for marker, family in _FAMILY_MARKERS:
        if marker in needle:
            return family
    return ProviderFamily.UNKNOWN
