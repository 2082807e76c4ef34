"""
Unit Tests — Streaming Invocation
══════════════════════════════════
Tests for inference_gateway/llm/streaming.py and
BedrockService.invoke_model_stream (inference_gateway/llm/bedrock.py)

Coverage:
  ✅ Fragments are yielded in order; control / empty chunks are skipped
  ✅ Non-chunk events and undecodable chunk bytes are skipped
  ✅ A stream with zero chunks terminates cleanly
  ✅ A consumed stream yields nothing on the second pass
  ✅ Early aclose() / leaving `async with` releases the channel exactly once
  ✅ Missing stream body → StreamPreconditionError, channel released
  ✅ Failure to open → TransportError, nothing left open
  ✅ Mid-stream failure → TransportError, channel released
  ✅ Unsupported provider raises before the stream is opened
"""

from __future__ import annotations

import asyncio
import json

import pytest
from botocore.exceptions import ClientError

from inference_gateway.core.exceptions import (
    StreamPreconditionError,
    TransportError,
    UnsupportedProviderError,
)

CLAUDE = "anthropic.claude-3-haiku-20240307-v1:0"
TITAN  = "amazon.titan-text-express-v1"


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _chunk(payload: dict) -> dict:
    return {"chunk": {"bytes": json.dumps(payload).encode("utf-8")}}


def _delta(text: str) -> dict:
    return _chunk({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}})


async def _collect(stream) -> list[str]:
    return [fragment async for fragment in stream]


# ─────────────────────────────────────────────────────────────────────────────
# Tests
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestInvokeModelStream:

    async def test_yields_fragments_in_order(self, bedrock_service, stream_transport):
        stream_transport.events = [
            _chunk({"type": "message_start", "message": {"id": "msg_1"}}),
            _delta("Hel"),
            _chunk({"type": "content_block_stop", "index": 0}),
            _delta("lo"),
            _chunk({"type": "message_stop"}),
        ]

        stream = await bedrock_service.invoke_model_stream(CLAUDE, "Say hello")
        fragments = await _collect(stream)

        assert fragments == ["Hel", "lo"]
        assert stream.fragment_count == 2
        assert stream.closed
        assert stream_transport.closed == 1
        assert stream.metadata.model_id == CLAUDE
        assert stream.metadata.provider == "anthropic"

        target, body = stream_transport.calls[0]
        assert target == CLAUDE
        assert json.loads(body)["messages"][0]["content"] == "Say hello"

    async def test_family_native_chunks(self, bedrock_service, stream_transport):
        stream_transport.events = [_chunk({"outputText": "Ti"}), _chunk({"outputText": "tan"})]

        stream = await bedrock_service.invoke_model_stream(TITAN, "Hi")

        assert await _collect(stream) == ["Ti", "tan"]

    async def test_skips_unrecognised_events(self, bedrock_service, stream_transport):
        stream_transport.events = [
            {"metadata": {"usage": {}}},
            {"chunk": {"bytes": b"not json"}},
            {"chunk": {}},
            _delta("ok"),
        ]

        stream = await bedrock_service.invoke_model_stream(CLAUDE, "Hi")

        assert await _collect(stream) == ["ok"]

    async def test_empty_stream_terminates_cleanly(self, bedrock_service, stream_transport):
        stream_transport.events = []

        stream = await bedrock_service.invoke_model_stream(CLAUDE, "Hi")

        assert await _collect(stream) == []
        assert stream.closed
        assert stream_transport.closed == 1

    async def test_second_consumption_yields_nothing(self, bedrock_service, stream_transport):
        stream_transport.events = [_delta("a"), _delta("b")]

        stream = await bedrock_service.invoke_model_stream(CLAUDE, "Hi")

        assert await _collect(stream) == ["a", "b"]
        assert await _collect(stream) == []
        assert stream_transport.opened == 1
        assert stream_transport.closed == 1

    async def test_early_aclose_releases_channel(self, bedrock_service, stream_transport):
        stream_transport.events = [_delta("a"), _delta("b"), _delta("c")]

        stream = await bedrock_service.invoke_model_stream(CLAUDE, "Hi")
        async for fragment in stream:
            assert fragment == "a"
            break

        assert stream_transport.closed == 0
        await stream.aclose()
        await stream.aclose()     # idempotent

        assert stream.closed
        assert stream_transport.closed == 1
        assert await _collect(stream) == []

    async def test_async_with_releases_channel(self, bedrock_service, stream_transport):
        stream_transport.events = [_delta("a"), _delta("b")]

        async with await bedrock_service.invoke_model_stream(CLAUDE, "Hi") as stream:
            first = await stream.__anext__()

        assert first == "a"
        assert stream.closed
        assert stream_transport.closed == 1

    async def test_missing_body_raises_precondition_error(self, bedrock_service, stream_transport):
        stream_transport.missing_body = True

        with pytest.raises(StreamPreconditionError) as exc_info:
            await bedrock_service.invoke_model_stream(CLAUDE, "Hi")

        assert exc_info.value.model_id == CLAUDE
        assert stream_transport.opened == 1
        assert stream_transport.closed == 1

    async def test_open_failure_is_transport_error(self, bedrock_service, stream_transport):
        original = ClientError(
            {"Error": {"Code": "ModelStreamErrorException", "Message": "test"}},
            "InvokeModelWithResponseStream",
        )
        stream_transport.open_error = original

        with pytest.raises(TransportError) as exc_info:
            await bedrock_service.invoke_model_stream(CLAUDE, "Hi")

        assert exc_info.value.original is original
        assert exc_info.value.operation == "invoke_model_stream"
        assert stream_transport.opened == 0

    async def test_mid_stream_failure(self, bedrock_service, stream_transport):
        boom = ConnectionResetError("connection reset by peer")
        stream_transport.events = [_delta("partial"), boom]

        stream = await bedrock_service.invoke_model_stream(CLAUDE, "Hi")
        received = []
        with pytest.raises(TransportError) as exc_info:
            async for fragment in stream:
                received.append(fragment)

        assert received == ["partial"]
        assert exc_info.value.original is boom
        assert exc_info.value.__cause__ is boom
        assert stream.closed
        assert stream_transport.closed == 1

    async def test_cancellation_releases_channel(self, bedrock_service, stream_transport):
        stream_transport.events = [_delta("a"), asyncio.CancelledError()]

        stream = await bedrock_service.invoke_model_stream(CLAUDE, "Hi")
        assert await stream.__anext__() == "a"
        with pytest.raises(asyncio.CancelledError):
            await stream.__anext__()

        assert stream.closed
        assert stream_transport.closed == 1

    async def test_unsupported_provider_opens_nothing(self, bedrock_service, stream_transport):
        with pytest.raises(UnsupportedProviderError):
            await bedrock_service.invoke_model_stream("mistral.mistral-7b-instruct-v0:2", "Hi")
        assert stream_transport.calls == []
