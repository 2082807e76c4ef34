"""
AWS Transport Layer — aioboto3 clients behind narrow capability protocols

The invocation core depends only on the protocols below; the aioboto3
implementations are the production defaults and tests substitute fakes.

  InvokeTransport   invoke(target, body, …)      → RawInvocation
  StreamTransport   open_stream(target, body)    → async ctx → async iterable of raw chunk records | None
  EndpointCatalog   list_endpoints / describe_endpoint      (SageMaker control plane)
  ModelCatalog      list_foundation_models / get_foundation_model (Bedrock control plane)

Connection handling:
  - One aioboto3 Session per transport; one client per call (aioboto3 clients
    are async context managers and NOT safe to share across event loops).
  - A streaming client stays open for as long as the caller holds the stream
    context — leaving the context closes the HTTP connection.
  - Retry/backoff is botocore's job: Config(retries={"max_attempts", "mode"}).
    The gateway never retries on top of it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterable, AsyncIterator, Protocol

import aioboto3
from botocore.config import Config

from inference_gateway.core.config import Settings

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


# ---------------------------------------------------------------------------
# Transport result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawInvocation:
    """Undecoded response of a synchronous invoke call."""
    body:              bytes
    content_type:      str | None = None
    custom_attributes: str | None = None
    invoked_variant:   str | None = None


# ---------------------------------------------------------------------------
# Capability protocols
# ---------------------------------------------------------------------------

class InvokeTransport(Protocol):
    async def invoke(
        self,
        target:       str,
        body:         bytes,
        content_type: str = JSON_CONTENT_TYPE,
        accept:       str = JSON_CONTENT_TYPE,
        **params:     Any,
    ) -> RawInvocation: ...


class StreamTransport(Protocol):
    def open_stream(
        self,
        target: str,
        body:   bytes,
    ) -> AsyncContextManager[AsyncIterable[dict[str, Any]] | None]: ...


class EndpointCatalog(Protocol):
    async def list_endpoints(self, status_equals: str, max_results: int) -> list[dict[str, Any]]: ...

    async def describe_endpoint(self, name: str) -> dict[str, Any]: ...


class ModelCatalog(Protocol):
    async def list_foundation_models(self) -> list[dict[str, Any]]: ...

    async def get_foundation_model(self, model_id: str) -> dict[str, Any]: ...


# ---------------------------------------------------------------------------
# aioboto3 implementations
# ---------------------------------------------------------------------------

def _client_config(settings: Settings) -> Config:
    return Config(
        retries={
            "max_attempts": settings.aws_max_attempts,
            "mode":         settings.aws_retry_mode,
        },
    )


async def _read_body(stream: Any) -> bytes:
    """aiobotocore StreamingBody → bytes (plain bytes pass through)."""
    if stream is None:
        return b""
    if isinstance(stream, (bytes, bytearray)):
        return bytes(stream)
    return await stream.read()


class _AioBotoTransport:
    """Common session/client plumbing."""

    _service: str = ""

    def __init__(self, region: str, config: Config, session: aioboto3.Session | None = None) -> None:
        self._region  = region
        self._config  = config
        self._session = session or aioboto3.Session()

    def _client(self):
        """Return a scoped async client context manager."""
        return self._session.client(
            self._service,
            region_name=self._region,
            config=self._config,
        )


class BedrockRuntimeTransport(_AioBotoTransport):
    """bedrock-runtime: InvokeModel + InvokeModelWithResponseStream."""

    _service = "bedrock-runtime"

    @classmethod
    def from_settings(cls, settings: Settings) -> "BedrockRuntimeTransport":
        return cls(settings.effective_bedrock_region, _client_config(settings))

    async def invoke(
        self,
        target:       str,
        body:         bytes,
        content_type: str = JSON_CONTENT_TYPE,
        accept:       str = JSON_CONTENT_TYPE,
        **params:     Any,
    ) -> RawInvocation:
        async with self._client() as bedrock:
            resp = await bedrock.invoke_model(
                modelId=target,
                body=body,
                contentType=content_type,
                accept=accept,
                **params,
            )
            raw = await _read_body(resp.get("body"))
        return RawInvocation(body=raw, content_type=resp.get("contentType"))

    @asynccontextmanager
    async def open_stream(
        self,
        target: str,
        body:   bytes,
    ) -> AsyncIterator[AsyncIterable[dict[str, Any]] | None]:
        async with self._client() as bedrock:
            resp = await bedrock.invoke_model_with_response_stream(
                modelId=target,
                body=body,
                contentType=JSON_CONTENT_TYPE,
                accept=JSON_CONTENT_TYPE,
            )
            # The EventStream reads from the open connection; keep the client
            # alive until the caller leaves this context.
            yield resp.get("body")


class BedrockCatalogTransport(_AioBotoTransport):
    """bedrock control plane: foundation model catalogue."""

    _service = "bedrock"

    @classmethod
    def from_settings(cls, settings: Settings) -> "BedrockCatalogTransport":
        return cls(settings.effective_bedrock_region, _client_config(settings))

    async def list_foundation_models(self) -> list[dict[str, Any]]:
        async with self._client() as bedrock:
            resp = await bedrock.list_foundation_models()
        return resp.get("modelSummaries") or []

    async def get_foundation_model(self, model_id: str) -> dict[str, Any]:
        async with self._client() as bedrock:
            resp = await bedrock.get_foundation_model(modelIdentifier=model_id)
        return resp.get("modelDetails") or {}


class SageMakerRuntimeTransport(_AioBotoTransport):
    """sagemaker-runtime: InvokeEndpoint."""

    _service = "sagemaker-runtime"

    # Optional InvokeEndpoint parameters; botocore rejects None values so
    # unset ones are dropped rather than sent.
    _OPTIONAL_PARAMS = {
        "custom_attributes": "CustomAttributes",
        "target_model":      "TargetModel",
        "target_variant":    "TargetVariant",
        "inference_id":      "InferenceId",
    }

    @classmethod
    def from_settings(cls, settings: Settings) -> "SageMakerRuntimeTransport":
        return cls(settings.aws_region, _client_config(settings))

    async def invoke(
        self,
        target:       str,
        body:         bytes,
        content_type: str = JSON_CONTENT_TYPE,
        accept:       str = JSON_CONTENT_TYPE,
        **params:     Any,
    ) -> RawInvocation:
        extra = {
            api_name: params[name]
            for name, api_name in self._OPTIONAL_PARAMS.items()
            if params.get(name) is not None
        }
        async with self._client() as sagemaker:
            resp = await sagemaker.invoke_endpoint(
                EndpointName=target,
                Body=body,
                ContentType=content_type,
                Accept=accept,
                **extra,
            )
            raw = await _read_body(resp.get("Body"))
        return RawInvocation(
            body=raw,
            content_type=resp.get("ContentType"),
            custom_attributes=resp.get("CustomAttributes"),
            invoked_variant=resp.get("InvokedProductionVariant"),
        )


class SageMakerCatalogTransport(_AioBotoTransport):
    """sagemaker control plane: ListEndpoints + DescribeEndpoint."""

    _service = "sagemaker"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SageMakerCatalogTransport":
        return cls(settings.aws_region, _client_config(settings))

    async def list_endpoints(self, status_equals: str, max_results: int) -> list[dict[str, Any]]:
        async with self._client() as sagemaker:
            resp = await sagemaker.list_endpoints(
                StatusEquals=status_equals,
                MaxResults=max_results,
            )
        return resp.get("Endpoints") or []

    async def describe_endpoint(self, name: str) -> dict[str, Any]:
        async with self._client() as sagemaker:
            return await sagemaker.describe_endpoint(EndpointName=name)
