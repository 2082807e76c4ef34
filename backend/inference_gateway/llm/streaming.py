"""
StreamHandle — single-pass, cancellable stream of content fragments

Wraps the raw chunk records of an open streaming invocation together with the
transport resources that keep the stream alive (an AsyncExitStack holding the
client context).

Lifecycle:
  open      → created by BedrockService.invoke_model_stream()
  iterating → each __anext__ awaits the next raw chunk; chunks that decode to
              "" are skipped, so only non-empty fragments are produced
  closed    → backend ended the stream, an error was raised, or the caller
              called aclose() / left ``async with``; resources are released
              exactly once

A closed handle yields nothing: iterating a second time ends immediately.

Usage::

    async with await service.invoke_model_stream(model_id, prompt) as stream:
        async for fragment in stream:
            ...
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable

from inference_gateway.core.exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamMetadata:
    model_id:   str
    provider:   str
    start_time: float      # epoch seconds when the stream was opened


class StreamHandle:
    """Async iterator over decoded fragments of one streaming call."""

    def __init__(
        self,
        events:    AsyncIterable[Any],
        decode:    Callable[[Any], str],
        resources: AsyncExitStack,
        metadata:  StreamMetadata,
    ) -> None:
        self.metadata    = metadata
        self._events     = events
        self._iterator: AsyncIterator[Any] | None = None
        self._decode     = decode
        self._resources  = resources
        self._closed     = False
        self._fragments  = 0
        self._t0         = time.perf_counter()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def fragment_count(self) -> int:
        return self._fragments

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def __aiter__(self) -> "StreamHandle":
        return self

    async def __anext__(self) -> str:
        while not self._closed:
            if self._iterator is None:
                self._iterator = self._events.__aiter__()

            try:
                event = await self._iterator.__anext__()
            except StopAsyncIteration:
                logger.info(
                    "Stream completed | model_id=%s fragments=%d duration_ms=%.1f",
                    self.metadata.model_id, self._fragments, self._elapsed_ms(),
                )
                await self.aclose()
                break
            except asyncio.CancelledError:
                await self.aclose()
                raise
            except Exception as exc:
                duration_ms = self._elapsed_ms()
                logger.error(
                    "Stream failed | model_id=%s fragments=%d duration_ms=%.1f error=%s",
                    self.metadata.model_id, self._fragments, duration_ms, exc,
                )
                await self.aclose()
                raise TransportError(
                    operation="invoke_model_stream",
                    target=self.metadata.model_id,
                    duration_ms=duration_ms,
                    original=exc,
                ) from exc

            fragment = self._decode(event)
            if fragment:
                self._fragments += 1
                return fragment

        raise StopAsyncIteration

    # ------------------------------------------------------------------
    # Resource release
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Release the underlying transport channel (idempotent)."""
        if self._closed:
            return
        self._closed = True
        await self._resources.aclose()

    async def __aenter__(self) -> "StreamHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _elapsed_ms(self) -> float:
        return (time.perf_counter() - self._t0) * 1000
