"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : test_settings, runtime_transport, stream_transport,
                    model_catalog, endpoint_catalog, bedrock_service,
                    sagemaker_service, endpoint_directory, async_client

Environment strategy:
  - No test talks to AWS. Every service is built with fake transports
    (AsyncMock / FakeStreamTransport) injected through its constructor.
  - Settings are constructed explicitly with _env_file=None so a developer's
    .env never leaks into a test run.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # FastAPI routing stack, mocked backends
"""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("AWS_REGION",            "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID",     "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("APP_ENV",               "development")

from inference_gateway.aws.transport import RawInvocation   # noqa: E402
from inference_gateway.core.config import Settings          # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def client_error(code: str, operation: str = "InvokeModel") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "test"}}, operation)


def raw_json(body: Any, **kwargs: Any) -> RawInvocation:
    """RawInvocation carrying a JSON-encoded body."""
    return RawInvocation(body=json.dumps(body).encode("utf-8"), **kwargs)


def stream_chunk(payload: dict[str, Any]) -> dict[str, Any]:
    """A Bedrock response-stream event wrapping one JSON chunk."""
    return {"chunk": {"bytes": json.dumps(payload).encode("utf-8")}}


class FakeStreamTransport:
    """
    StreamTransport double.

    `events` may contain exceptions; they are raised when reached.
    `missing_body=True` simulates Bedrock returning no stream body.
    opened / closed count how often the client context was entered / left.
    """

    def __init__(self, events: list[Any] | None = None, missing_body: bool = False) -> None:
        self.events       = list(events or [])
        self.missing_body = missing_body
        self.open_error: Exception | None = None
        self.opened       = 0
        self.closed       = 0
        self.calls: list[tuple[str, bytes]] = []

    @asynccontextmanager
    async def open_stream(self, target: str, body: bytes) -> AsyncIterator[Any]:
        self.calls.append((target, body))
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        try:
            yield None if self.missing_body else self._iterate()
        finally:
            self.closed += 1

    async def _iterate(self) -> AsyncIterator[Any]:
        for event in self.events:
            if isinstance(event, BaseException):
                raise event
            yield event


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def test_settings() -> Settings:
    """Explicit settings — no default task endpoints configured."""
    return Settings(
        _env_file=None,
        aws_region="us-east-1",
        sagemaker_document_classifier_endpoint="",
        sagemaker_ner_endpoint="",
        sagemaker_embedding_endpoint="",
        sagemaker_sentiment_endpoint="",
        batch_inference_size=10,
        batch_inference_concurrency=1,
    )


@pytest.fixture
def configured_settings() -> Settings:
    """Settings with every default task endpoint configured."""
    return Settings(
        _env_file=None,
        aws_region="us-east-1",
        sagemaker_document_classifier_endpoint="doc-classifier-prod",
        sagemaker_ner_endpoint="ner-prod",
        sagemaker_embedding_endpoint="embeddings-prod",
        sagemaker_sentiment_endpoint="sentiment-prod",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Transport doubles
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def runtime_transport() -> MagicMock:
    """InvokeTransport mock; configure .invoke per test."""
    transport = MagicMock()
    transport.invoke = AsyncMock(return_value=raw_json({}))
    return transport


@pytest.fixture
def stream_transport() -> FakeStreamTransport:
    return FakeStreamTransport()


@pytest.fixture
def model_catalog() -> MagicMock:
    catalog = MagicMock()
    catalog.list_foundation_models = AsyncMock(return_value=[])
    catalog.get_foundation_model   = AsyncMock(return_value={})
    return catalog


@pytest.fixture
def endpoint_catalog() -> MagicMock:
    catalog = MagicMock()
    catalog.list_endpoints    = AsyncMock(return_value=[])
    catalog.describe_endpoint = AsyncMock(return_value={})
    return catalog


# ─────────────────────────────────────────────────────────────────────────────
# Services wired to the doubles
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def bedrock_service(test_settings, runtime_transport, stream_transport, model_catalog):
    from inference_gateway.llm.bedrock import BedrockService
    return BedrockService(
        test_settings,
        runtime=runtime_transport,
        streaming=stream_transport,
        catalog=model_catalog,
    )


@pytest.fixture
def sagemaker_service(test_settings, runtime_transport):
    from inference_gateway.sagemaker.service import SageMakerService
    return SageMakerService(test_settings, runtime=runtime_transport)


@pytest.fixture
def endpoint_directory(test_settings, endpoint_catalog):
    from inference_gateway.sagemaker.directory import EndpointDirectory
    return EndpointDirectory(test_settings, catalog=endpoint_catalog)


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with service dependency overrides
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_overrides(bedrock_service, sagemaker_service, endpoint_directory):
    """
    FastAPI app with every service dependency overridden so no route can
    reach AWS.
    """
    from inference_gateway.api.dependencies import (
        get_bedrock_service,
        get_endpoint_directory,
        get_sagemaker_service,
    )
    from inference_gateway.main import app

    app.dependency_overrides[get_bedrock_service]    = lambda: bedrock_service
    app.dependency_overrides[get_sagemaker_service]  = lambda: sagemaker_service
    app.dependency_overrides[get_endpoint_directory] = lambda: endpoint_directory

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using the overridden app."""
    from httpx import ASGITransport
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
