"""
Models API — Bedrock foundation model invocation

POST /api/v1/models/invoke          → JSON response (single-shot)
POST /api/v1/models/stream          → Server-Sent Events (SSE) streaming
GET  /api/v1/models                 → foundation model catalogue
GET  /api/v1/models/{model_id}      → raw model details

Streaming (SSE) response format:
  event: token
  data: <fragment>

  event: done
  data: {"model_id": "...", "fragments": 12, "duration_ms": 1234.5}

  event: error
  data: {"message": "..."}

Errors raised before the stream opens (unsupported provider, transport
failure, missing stream body) are returned as regular JSON error responses by
the application's exception handlers.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from inference_gateway.api.dependencies import get_bedrock_service
from inference_gateway.llm.bedrock import BedrockService, FoundationModel
from inference_gateway.llm.streaming import StreamHandle
from inference_gateway.schemas.inference import InvocationRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["Models"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UsageResponse(BaseModel):
    input_tokens:  int
    output_tokens: int
    total_tokens:  int


class InvokeModelResponse(BaseModel):
    """Normalized single-shot invocation result."""
    content:       str
    model_id:      str
    provider:      str
    finish_reason: str
    duration_ms:   float
    usage:         UsageResponse


# ---------------------------------------------------------------------------
# POST /api/v1/models/invoke
# ---------------------------------------------------------------------------

@router.post(
    "/invoke",
    response_model=InvokeModelResponse,
    summary="Invoke a foundation model (non-streaming)",
)
async def invoke_model(
    body:    InvocationRequest,
    service: BedrockService = Depends(get_bedrock_service),
) -> InvokeModelResponse:
    result = await service.invoke(body)
    return InvokeModelResponse(
        content=result.content,
        model_id=result.metadata.model_id,
        provider=result.metadata.provider,
        finish_reason=result.metadata.finish_reason,
        duration_ms=result.metadata.duration_ms,
        usage=UsageResponse(
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
            total_tokens=result.usage.total_tokens,
        ),
    )


# ---------------------------------------------------------------------------
# POST /api/v1/models/stream
# ---------------------------------------------------------------------------

@router.post(
    "/stream",
    response_class=StreamingResponse,
    summary="Invoke a foundation model (SSE streaming)",
)
async def stream_model(
    body:    InvocationRequest,
    service: BedrockService = Depends(get_bedrock_service),
) -> StreamingResponse:
    stream = await service.invoke_model_stream(body.model_id, body.prompt, body.options)

    return StreamingResponse(
        _event_stream(stream),
        media_type="text/event-stream",
        headers={
            "Cache-Control":     "no-cache",
            "X-Accel-Buffering": "no",    # disable nginx buffering for SSE
            "Connection":        "keep-alive",
        },
    )


async def _event_stream(stream: StreamHandle) -> AsyncIterator[str]:
    t0 = time.perf_counter()
    async with stream:
        try:
            async for fragment in stream:
                yield _sse_event("token", fragment)
        except Exception as exc:
            logger.error("ModelStream | model_id=%s error=%s", stream.metadata.model_id, exc)
            yield _sse_event("error", {"message": str(exc)})
            return

    yield _sse_event("done", {
        "model_id":    stream.metadata.model_id,
        "provider":    stream.metadata.provider,
        "fragments":   stream.fragment_count,
        "duration_ms": round((time.perf_counter() - t0) * 1000, 1),
    })


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

@router.get("", summary="List foundation models")
async def list_models(
    service: BedrockService = Depends(get_bedrock_service),
) -> list[FoundationModel]:
    return await service.list_foundation_models()


@router.get("/{model_id:path}", summary="Foundation model details")
async def get_model(
    model_id: str,
    service:  BedrockService = Depends(get_bedrock_service),
) -> dict[str, Any]:
    return await service.get_model_info(model_id)


# ---------------------------------------------------------------------------
# SSE serialisation helper
# ---------------------------------------------------------------------------

def _sse_event(event: str, data: str | dict) -> str:
    """
    Serialise a Server-Sent Event.

    For "token" events, data is the raw fragment; multi-line fragments are
    split across several ``data:`` lines so clients rejoin them with "\\n".
    For "done" / "error" events, data is a dict serialised to JSON.
    """
    if isinstance(data, dict):
        payload = json.dumps(data, ensure_ascii=False)
    else:
        payload = data
    lines = "".join(f"data: {line}\n" for line in payload.split("\n"))
    return f"event: {event}\n{lines}\n"
