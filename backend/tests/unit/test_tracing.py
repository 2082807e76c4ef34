"""
Unit Tests — traced decorator
══════════════════════════════
Tests for inference_gateway/observability/tracing.py
"""

from __future__ import annotations

import logging

import pytest

from inference_gateway.observability.tracing import traced


@pytest.mark.unit
class TestTraced:

    async def test_returns_result_and_keeps_metadata(self, caplog):
        @traced("unit.double")
        async def double(x: int) -> int:
            """Double x."""
            return x * 2

        with caplog.at_level(logging.DEBUG, logger="inference_gateway.observability.tracing"):
            assert await double(21) == 42

        assert double.__name__ == "double"
        assert double.__doc__ == "Double x."
        assert "span=unit.double" in caplog.text

    async def test_reraises_and_logs(self, caplog):
        @traced()
        async def explode() -> None:
            raise LookupError("missing")

        with caplog.at_level(logging.ERROR, logger="inference_gateway.observability.tracing"):
            with pytest.raises(LookupError):
                await explode()

        assert "explode" in caplog.text
        assert "missing" in caplog.text
