"""
Payload Translator — uniform (prompt, options) ⇄ provider wire format

Every provider family is one ProviderCodec holding three functions:

  encode(prompt, options)  → native request body (dict, JSON-serialisable)
  decode(body)             → DecodedResponse(content, finish_reason, usage?)
  decode_fragment(chunk)   → content delta from one streamed chunk ("" = skip)

Codecs are looked up once per call from the classified ProviderFamily. The
registry is checked for completeness at import time, so adding a family to
the enum without a codec fails loudly instead of falling through to another
family's shape.

Response parsing:
  Each family has an explicit pydantic response schema. All fields are
  optional and extra keys are allowed. A field that fails validation (wrong
  type) is logged and dropped, so it falls back to its default while the
  valid fields of the same body are kept. decode() therefore never raises on
  missing or malformed optional fields: absent content is "" and an absent
  finish reason is "complete".

Request shapes (Bedrock runtime):

  anthropic  {messages, max_tokens, temperature, top_p, anthropic_version, [top_k, stop_sequences]}
  amazon     {inputText, textGenerationConfig{maxTokenCount, temperature, topP, stopSequences}}
  ai21       {prompt, maxTokens, temperature, topP, stopSequences, [presencePenalty, frequencyPenalty]}
  cohere     {prompt, max_tokens, temperature, p, stop_sequences, [k, seed]}
  meta       {prompt, max_gen_len, temperature, top_p}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from inference_gateway.core.exceptions import UnsupportedProviderError
from inference_gateway.llm.providers import ProviderFamily
from inference_gateway.schemas.inference import GenerationOptions

logger = logging.getLogger(__name__)

ANTHROPIC_BEDROCK_VERSION = "bedrock-2023-05-31"
META_MAX_GEN_LEN          = 2048     # Bedrock rejects larger max_gen_len for Llama
DEFAULT_FINISH_REASON     = "complete"


# ---------------------------------------------------------------------------
# Decoded result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DecodedResponse:
    """Provider-neutral view of one response body."""
    content:       str
    finish_reason: str        = DEFAULT_FINISH_REASON
    input_tokens:  int | None = None     # None = provider did not report
    output_tokens: int | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class LenientSchema(BaseModel):
    model_config = ConfigDict(extra="allow")


class _AnthropicBlock(LenientSchema):
    type: str | None = None
    text: str | None = None


class _AnthropicUsage(LenientSchema):
    input_tokens:  int | None = None
    output_tokens: int | None = None


class AnthropicResponse(LenientSchema):
    content:     list[_AnthropicBlock] | None = None
    stop_reason: str | None                   = None
    usage:       _AnthropicUsage | None       = None


class _TitanResult(LenientSchema):
    outputText:       str | None = None
    tokenCount:       int | None = None
    completionReason: str | None = None


class AmazonResponse(LenientSchema):
    inputTextTokenCount: int | None                = None
    results:             list[_TitanResult] | None = None
    outputText:          str | None                = None    # streaming chunk shape


class _Ai21Data(LenientSchema):
    text:   str | None       = None
    tokens: list[Any] | None = None


class _Ai21FinishReason(LenientSchema):
    reason: str | None = None


class _Ai21Completion(LenientSchema):
    data:         _Ai21Data | None         = None
    finishReason: _Ai21FinishReason | None = None


class _Ai21Prompt(LenientSchema):
    tokens: list[Any] | None = None


class Ai21Response(LenientSchema):
    prompt:      _Ai21Prompt | None           = None
    completions: list[_Ai21Completion] | None = None


class _CohereGeneration(LenientSchema):
    text:          str | None = None
    finish_reason: str | None = None


class CohereResponse(LenientSchema):
    generations:   list[_CohereGeneration] | None = None
    text:          str | None                     = None    # streaming chunk shape
    finish_reason: str | None                     = None


class MetaResponse(LenientSchema):
    generation:             str | None = None
    stop_reason:            str | None = None
    prompt_token_count:     int | None = None
    generation_token_count: int | None = None


class GenericResponse(LenientSchema):
    text:        Any = None
    content:     Any = None
    outputText:  Any = None
    stop_reason: Any = None
    finishReason: Any = None


_Schema = TypeVar("_Schema", bound=LenientSchema)


def parse_lenient(schema: type[_Schema], body: Any) -> _Schema:
    """
    Validate a response body against its schema, field by field.

    Top-level fields that fail validation are dropped and revalidated, so each
    one falls back to its own default. A non-dict body is an empty schema.
    """
    if not isinstance(body, dict):
        return schema()

    data = dict(body)
    while True:
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            invalid = {err["loc"][0] for err in exc.errors() if err["loc"]} & data.keys()
            logger.warning(
                "Translator | %s dropping malformed fields=%s errors=%s",
                schema.__name__, sorted(invalid), exc.errors()[:3],
            )
            if not invalid:
                return schema()
            for key in invalid:
                del data[key]


def _first(items: list | None):
    return items[0] if items else None


# ---------------------------------------------------------------------------
# anthropic
# ---------------------------------------------------------------------------

def _encode_anthropic(prompt: str, options: GenerationOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "messages":          [{"role": "user", "content": prompt}],
        "max_tokens":        options.resolved_max_tokens,
        "temperature":       options.resolved_temperature,
        "top_p":             options.resolved_top_p,
        "anthropic_version": ANTHROPIC_BEDROCK_VERSION,
    }
    if options.top_k is not None:
        body["top_k"] = options.top_k
    if options.stop_sequences:
        body["stop_sequences"] = options.resolved_stop_sequences
    return body


def _decode_anthropic(body: Any) -> DecodedResponse:
    parsed = parse_lenient(AnthropicResponse, body)
    block  = _first(parsed.content)
    usage  = parsed.usage or _AnthropicUsage()
    return DecodedResponse(
        content       = (block.text if block else None) or "",
        finish_reason = parsed.stop_reason or DEFAULT_FINISH_REASON,
        input_tokens  = usage.input_tokens,
        output_tokens = usage.output_tokens,
    )


def _content_block_delta(chunk: dict[str, Any]) -> str | None:
    """Text of an incremental ``content_block_delta`` chunk; None for any other type."""
    if chunk.get("type") != "content_block_delta":
        return None
    delta = chunk.get("delta")
    text  = delta.get("text") if isinstance(delta, dict) else None
    return text if isinstance(text, str) else ""


def _fragment_anthropic(chunk: dict[str, Any]) -> str:
    # message_start, content_block_stop, message_stop ... carry no text
    return _content_block_delta(chunk) or ""


# ---------------------------------------------------------------------------
# amazon (Titan)
# ---------------------------------------------------------------------------

def _encode_amazon(prompt: str, options: GenerationOptions) -> dict[str, Any]:
    return {
        "inputText": prompt,
        "textGenerationConfig": {
            "maxTokenCount": options.resolved_max_tokens,
            "temperature":   options.resolved_temperature,
            "topP":          options.resolved_top_p,
            "stopSequences": options.resolved_stop_sequences,
        },
    }


def _decode_amazon(body: Any) -> DecodedResponse:
    parsed = parse_lenient(AmazonResponse, body)
    result = _first(parsed.results) or _TitanResult()
    return DecodedResponse(
        content       = result.outputText or "",
        finish_reason = result.completionReason or DEFAULT_FINISH_REASON,
        input_tokens  = parsed.inputTextTokenCount,
        output_tokens = result.tokenCount,
    )


def _fragment_amazon(chunk: dict[str, Any]) -> str:
    return parse_lenient(AmazonResponse, chunk).outputText or ""


# ---------------------------------------------------------------------------
# ai21 (Jurassic)
# ---------------------------------------------------------------------------

def _encode_ai21(prompt: str, options: GenerationOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "prompt":        prompt,
        "maxTokens":     options.resolved_max_tokens,
        "temperature":   options.resolved_temperature,
        "topP":          options.resolved_top_p,
        "stopSequences": options.resolved_stop_sequences,
    }
    if options.presence_penalty is not None:
        body["presencePenalty"] = {"scale": options.presence_penalty}
    if options.frequency_penalty is not None:
        body["frequencyPenalty"] = {"scale": options.frequency_penalty}
    return body


def _decode_ai21(body: Any) -> DecodedResponse:
    parsed     = parse_lenient(Ai21Response, body)
    completion = _first(parsed.completions) or _Ai21Completion()
    data       = completion.data or _Ai21Data()
    finish     = completion.finishReason or _Ai21FinishReason()
    prompt     = parsed.prompt or _Ai21Prompt()
    return DecodedResponse(
        content       = data.text or "",
        finish_reason = finish.reason or DEFAULT_FINISH_REASON,
        input_tokens  = len(prompt.tokens) if prompt.tokens is not None else None,
        output_tokens = len(data.tokens) if data.tokens is not None else None,
    )


def _fragment_ai21(chunk: dict[str, Any]) -> str:
    return _decode_ai21(chunk).content


# ---------------------------------------------------------------------------
# cohere (Command)
# ---------------------------------------------------------------------------

def _encode_cohere(prompt: str, options: GenerationOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "prompt":         prompt,
        "max_tokens":     options.resolved_max_tokens,
        "temperature":    options.resolved_temperature,
        "p":              options.resolved_top_p,
        "stop_sequences": options.resolved_stop_sequences,
    }
    if options.top_k is not None:
        body["k"] = options.top_k
    if options.seed is not None:
        body["seed"] = options.seed
    return body


def _decode_cohere(body: Any) -> DecodedResponse:
    parsed     = parse_lenient(CohereResponse, body)
    generation = _first(parsed.generations) or _CohereGeneration()
    return DecodedResponse(
        content       = generation.text or "",
        finish_reason = generation.finish_reason or DEFAULT_FINISH_REASON,
    )


def _fragment_cohere(chunk: dict[str, Any]) -> str:
    parsed = parse_lenient(CohereResponse, chunk)
    if parsed.text:
        return parsed.text
    generation = _first(parsed.generations)
    return (generation.text if generation else None) or ""


# ---------------------------------------------------------------------------
# meta (Llama)
# ---------------------------------------------------------------------------

def _encode_meta(prompt: str, options: GenerationOptions) -> dict[str, Any]:
    return {
        "prompt":      prompt,
        "max_gen_len": min(options.resolved_max_tokens, META_MAX_GEN_LEN),
        "temperature": options.resolved_temperature,
        "top_p":       options.resolved_top_p,
    }


def _decode_meta(body: Any) -> DecodedResponse:
    parsed = parse_lenient(MetaResponse, body)
    return DecodedResponse(
        content       = parsed.generation or "",
        finish_reason = parsed.stop_reason or DEFAULT_FINISH_REASON,
        input_tokens  = parsed.prompt_token_count,
        output_tokens = parsed.generation_token_count,
    )


def _fragment_meta(chunk: dict[str, Any]) -> str:
    return parse_lenient(MetaResponse, chunk).generation or ""


# ---------------------------------------------------------------------------
# Codec registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderCodec:
    encode:          Callable[[str, GenerationOptions], dict[str, Any]]
    decode:          Callable[[Any], DecodedResponse]
    decode_fragment: Callable[[dict[str, Any]], str]


_CODECS: dict[ProviderFamily, ProviderCodec] = {
    ProviderFamily.ANTHROPIC: ProviderCodec(_encode_anthropic, _decode_anthropic, _fragment_anthropic),
    ProviderFamily.AMAZON:    ProviderCodec(_encode_amazon,    _decode_amazon,    _fragment_amazon),
    ProviderFamily.AI21:      ProviderCodec(_encode_ai21,      _decode_ai21,      _fragment_ai21),
    ProviderFamily.COHERE:    ProviderCodec(_encode_cohere,    _decode_cohere,    _fragment_cohere),
    ProviderFamily.META:      ProviderCodec(_encode_meta,      _decode_meta,      _fragment_meta),
}

_UNCOVERED = set(ProviderFamily) - set(_CODECS) - {ProviderFamily.UNKNOWN}
if _UNCOVERED:   # pragma: no cover
    raise RuntimeError(f"ProviderFamily members without a codec: {sorted(_UNCOVERED)}")


def get_codec(family: ProviderFamily) -> ProviderCodec | None:
    return _CODECS.get(family)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def encode(
    family:   ProviderFamily,
    prompt:   str,
    options:  GenerationOptions | None = None,
    model_id: str = "",
) -> dict[str, Any]:
    """
    Build the native request body for `family`.

    Raises:
        UnsupportedProviderError: family is UNKNOWN (no default shape exists).
    """
    codec = get_codec(family)
    if codec is None:
        raise UnsupportedProviderError(model_id=model_id, family=family.value)
    return codec.encode(prompt, options or GenerationOptions())


def decode(family: ProviderFamily, body: Any) -> DecodedResponse:
    """Parse a native response body. Never raises on shape problems."""
    codec = get_codec(family)
    if codec is not None:
        return codec.decode(body)

    parsed  = parse_lenient(GenericResponse, body)
    content = parsed.text or parsed.content or parsed.outputText or ""
    finish  = parsed.stop_reason or parsed.finishReason or DEFAULT_FINISH_REASON
    return DecodedResponse(
        content       = content if isinstance(content, str) else "",
        finish_reason = finish if isinstance(finish, str) else DEFAULT_FINISH_REASON,
    )


def decode_fragment(family: ProviderFamily, chunk: Any) -> str:
    """
    Extract the content delta from one streamed chunk.

    The incremental delta shape (``type == "content_block_delta"``) is
    recognised for every family; otherwise the family's full-message fragment
    shape is tried. Unrecognised chunks return "" and are skipped by callers.
    """
    if not isinstance(chunk, dict):
        return ""

    delta = _content_block_delta(chunk)
    if delta is not None:
        return delta

    codec = get_codec(family)
    if codec is not None:
        return codec.decode_fragment(chunk)

    text = chunk.get("outputText")
    return text if isinstance(text, str) else ""
