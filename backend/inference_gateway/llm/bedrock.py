"""
Bedrock Service — uniform invocation over heterogeneous foundation models

  ┌───────────────────────────────────────────────────────┐
  │  BedrockService.invoke_model() / invoke_model_stream()│
  │       │                                               │
  │       ▼                                               │
  │  classify(model_id)          ← provider family        │
  │       │                                               │
  │       ▼                                               │
  │  translator.encode()         ← native request body    │
  │       │                                               │
  │       ▼                                               │
  │  transport.invoke / open_stream  (aioboto3)           │
  │       │                                               │
  │       ▼                                               │
  │  translator.decode() / decode_fragment()              │
  │       │                                               │
  │       ▼                                               │
  │  usage estimator (only when counts are missing)       │
  │       │                                               │
  │       ▼                                               │
  │  InvocationResult / StreamHandle                      │
  └───────────────────────────────────────────────────────┘

Failure policy:
  - UnsupportedProviderError is raised before any network call.
  - Transport failures are timed, logged once and raised as TransportError
    (original exception attached). Nothing is retried here; botocore owns
    retry/backoff.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from functools import partial
from typing import Any

from inference_gateway.aws.transport import (
    BedrockCatalogTransport,
    BedrockRuntimeTransport,
    InvokeTransport,
    ModelCatalog,
    StreamTransport,
)
from inference_gateway.core.config import Settings
from inference_gateway.core.exceptions import StreamPreconditionError, TransportError
from inference_gateway.llm.providers import ProviderFamily, classify
from inference_gateway.llm.streaming import StreamHandle, StreamMetadata
from inference_gateway.llm.translator import decode, decode_fragment, encode
from inference_gateway.llm.usage import TokenUsage, estimate_input_tokens, estimate_output_tokens
from inference_gateway.schemas.inference import GenerationOptions, InvocationRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InvocationMetadata:
    model_id:      str
    provider:      str
    duration_ms:   float
    finish_reason: str


@dataclass(frozen=True)
class InvocationResult:
    """Normalized outcome of one successful single-shot call."""
    content:  str
    usage:    TokenUsage
    metadata: InvocationMetadata


@dataclass(frozen=True)
class FoundationModel:
    model_id:   str
    model_name: str
    provider:   str


# ---------------------------------------------------------------------------
# Raw stream record → chunk payload
# ---------------------------------------------------------------------------

def _chunk_payload(event: Any) -> dict[str, Any] | None:
    """
    Bedrock stream events look like ``{"chunk": {"bytes": b'{...}'}}``.
    Anything else (or undecodable bytes) yields None and is skipped.
    """
    if not isinstance(event, dict):
        return None
    chunk = event.get("chunk")
    raw   = chunk.get("bytes") if isinstance(chunk, dict) else None
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Bedrock stream | skipping undecodable chunk: %s", exc)
        return None
    return payload if isinstance(payload, dict) else None


def _decode_event(family: ProviderFamily, event: Any) -> str:
    payload = _chunk_payload(event)
    if payload is None:
        return ""
    return decode_fragment(family, payload)


# ---------------------------------------------------------------------------
# BedrockService
# ---------------------------------------------------------------------------

class BedrockService:
    """
    Provider-agnostic Bedrock invocation.

    Holds no per-call state; one instance can serve concurrent calls.

    Usage::

        service = BedrockService(settings)
        result  = await service.invoke_model("anthropic.claude-3-haiku-20240307-v1:0", "Hello")

        async with await service.invoke_model_stream(model_id, prompt) as stream:
            async for fragment in stream:
                ...
    """

    def __init__(
        self,
        settings:  Settings,
        runtime:   InvokeTransport | None = None,
        streaming: StreamTransport | None = None,
        catalog:   ModelCatalog | None    = None,
    ) -> None:
        self._settings = settings
        default_runtime = None
        if runtime is None or streaming is None:
            default_runtime = BedrockRuntimeTransport.from_settings(settings)
        self._runtime   = runtime or default_runtime
        self._streaming = streaming or default_runtime
        self._catalog   = catalog or BedrockCatalogTransport.from_settings(settings)

    # -----------------------------------------------------------------------
    # Single-shot
    # -----------------------------------------------------------------------

    async def invoke(self, request: InvocationRequest) -> InvocationResult:
        return await self.invoke_model(request.model_id, request.prompt, request.options)

    async def invoke_model(
        self,
        model_id: str,
        prompt:   str,
        options:  GenerationOptions | None = None,
    ) -> InvocationResult:
        """
        Invoke a foundation model and normalize its response.

        Raises:
            UnsupportedProviderError: model_id does not map to a known family.
            TransportError:           the Bedrock call failed.
        """
        family  = classify(model_id)
        payload = encode(family, prompt, options, model_id=model_id)

        t0 = time.perf_counter()
        try:
            raw  = await self._runtime.invoke(model_id, json.dumps(payload).encode("utf-8"))
            body = json.loads(raw.body or b"{}")
        except Exception as exc:
            duration_ms = (time.perf_counter() - t0) * 1000
            logger.error(
                "Bedrock invocation failed | model_id=%s duration_ms=%.1f error=%s",
                model_id, duration_ms, exc,
            )
            raise TransportError(
                operation="invoke_model",
                target=model_id,
                duration_ms=duration_ms,
                original=exc,
            ) from exc

        duration_ms = (time.perf_counter() - t0) * 1000
        decoded     = decode(family, body)

        input_tokens = decoded.input_tokens
        if input_tokens is None:
            input_tokens = estimate_input_tokens(payload)
        output_tokens = decoded.output_tokens
        if output_tokens is None:
            output_tokens = estimate_output_tokens(body)

        usage = TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)

        logger.info(
            "Bedrock invocation completed | model_id=%s provider=%s duration_ms=%.1f "
            "input_tokens=%d output_tokens=%d finish_reason=%s",
            model_id, family.value, duration_ms,
            usage.input_tokens, usage.output_tokens, decoded.finish_reason,
        )

        return InvocationResult(
            content=decoded.content,
            usage=usage,
            metadata=InvocationMetadata(
                model_id=model_id,
                provider=family.value,
                duration_ms=duration_ms,
                finish_reason=decoded.finish_reason,
            ),
        )

    # -----------------------------------------------------------------------
    # Streaming
    # -----------------------------------------------------------------------

    async def invoke_model_stream(
        self,
        model_id: str,
        prompt:   str,
        options:  GenerationOptions | None = None,
    ) -> StreamHandle:
        """
        Open a streaming invocation.

        The returned StreamHandle owns the open connection; iterate it to
        exhaustion or call aclose() (``async with`` does) to release it.

        Raises:
            UnsupportedProviderError: model_id does not map to a known family.
            TransportError:           the stream could not be opened.
            StreamPreconditionError:  Bedrock returned no stream body.
        """
        family  = classify(model_id)
        payload = encode(family, prompt, options, model_id=model_id)

        resources = AsyncExitStack()
        t0 = time.perf_counter()
        try:
            events = await resources.enter_async_context(
                self._streaming.open_stream(model_id, json.dumps(payload).encode("utf-8"))
            )
        except Exception as exc:
            await resources.aclose()
            duration_ms = (time.perf_counter() - t0) * 1000
            logger.error(
                "Bedrock streaming invocation failed | model_id=%s duration_ms=%.1f error=%s",
                model_id, duration_ms, exc,
            )
            raise TransportError(
                operation="invoke_model_stream",
                target=model_id,
                duration_ms=duration_ms,
                original=exc,
            ) from exc

        if events is None:
            await resources.aclose()
            logger.error("Bedrock streaming invocation returned no body | model_id=%s", model_id)
            raise StreamPreconditionError(model_id)

        logger.info("Bedrock stream opened | model_id=%s provider=%s", model_id, family.value)

        return StreamHandle(
            events=events,
            decode=partial(_decode_event, family),
            resources=resources,
            metadata=StreamMetadata(
                model_id=model_id,
                provider=family.value,
                start_time=time.time(),
            ),
        )

    # -----------------------------------------------------------------------
    # Foundation model catalogue
    # -----------------------------------------------------------------------

    async def list_foundation_models(self) -> list[FoundationModel]:
        try:
            summaries = await self._catalog.list_foundation_models()
        except Exception as exc:
            logger.error("Failed to list foundation models | error=%s", exc)
            raise

        return [
            FoundationModel(
                model_id=summary.get("modelId", ""),
                model_name=summary.get("modelName", ""),
                provider=summary.get("providerName", ""),
            )
            for summary in summaries
        ]

    async def get_model_info(self, model_id: str) -> dict[str, Any]:
        try:
            return await self._catalog.get_foundation_model(model_id)
        except Exception as exc:
            logger.error("Failed to get model info | model_id=%s error=%s", model_id, exc)
            raise
