"""
Observability Tracing — span timing for gateway coroutines

Decorator `@traced(name)`:
  Instruments any async function with timing and error recording through
  the standard logging module. Exceptions are logged and re-raised unchanged.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Decorator that instruments an async function with timing and error logging.

    Usage::

        @traced("sagemaker.classify_document")
        async def classify_document(self, text: str) -> DocumentClassification:
            ...

        @traced()   # uses function name as span name
        async def describe_endpoint(self, name: str) -> EndpointDetail:
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            t0 = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                elapsed_ms = (time.perf_counter() - t0) * 1000
                logger.debug("trace | span=%s elapsed_ms=%.1f ok", span_name, elapsed_ms)
                return result
            except Exception as exc:
                elapsed_ms = (time.perf_counter() - t0) * 1000
                logger.error(
                    "trace | span=%s elapsed_ms=%.1f error=%s",
                    span_name, elapsed_ms, exc,
                )
                raise

        return wrapper  # type: ignore[return-value]
    return decorator
