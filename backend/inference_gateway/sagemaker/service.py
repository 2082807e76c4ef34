"""
SageMaker Service — endpoint invocation, derived NLP tasks, batch inference

Endpoint invocation
  invoke_endpoint(name, payload, …) sends a JSON body to a deployed endpoint
  and returns the parsed body plus transport metadata (content type, custom
  attributes, invoked production variant, duration).

Derived tasks
  classify_document / extract_entities / generate_embeddings / analyze_sentiment
  each resolve their endpoint from the explicit argument or the configured
  default (Settings.sagemaker_*_endpoint). With neither, they raise
  MissingEndpointConfigurationError before touching the network. Predictions
  are validated field by field against lenient schemas; a missing or
  malformed field falls back to its own default (label "unknown" / "neutral",
  confidence 0.0, empty scores) without discarding its valid siblings. Each
  entity is validated on its own; an embedding is a bare vector or
  ``{"embedding": [...]}``, otherwise [].

Batch inference
  Inputs are split into ordered chunks of `batch_size`; each chunk is one
  ``{"instances": chunk}`` call. A failed chunk yields one FailedPrediction
  per input in that chunk — siblings are unaffected and nothing is retried.
  The output list always has the same length and order as the input list.

  Chunks run sequentially by default. `concurrency > 1` lets up to that many
  chunks be in flight at once (asyncio.Semaphore); ordering is preserved
  because results are assembled by chunk index.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from pydantic import TypeAdapter, ValidationError

from inference_gateway.aws.transport import JSON_CONTENT_TYPE, InvokeTransport, SageMakerRuntimeTransport
from inference_gateway.core.config import Settings
from inference_gateway.core.exceptions import MissingEndpointConfigurationError, TransportError
from inference_gateway.llm.translator import LenientSchema, parse_lenient
from inference_gateway.observability.tracing import traced

logger = logging.getLogger(__name__)

BATCH_FAILURE_MESSAGE = "Processing failed"
CLASSIFIER_MAX_LENGTH = 512


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EndpointInvocationMetadata:
    endpoint_name: str
    duration_ms:   float
    timestamp:     datetime


@dataclass(frozen=True)
class EndpointInvocationResult:
    body:                       Any
    content_type:               str | None
    custom_attributes:          str | None
    invoked_production_variant: str | None
    metadata:                   EndpointInvocationMetadata


@dataclass(frozen=True)
class DocumentClassification:
    classification: str
    confidence:     float
    metadata:       dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EntityMention:
    entity:     str
    type:       str
    confidence: float
    start:      int
    end:        int


@dataclass(frozen=True)
class SentimentResult:
    sentiment:  str
    confidence: float
    scores:     Any = field(default_factory=dict)


@dataclass(frozen=True)
class FailedPrediction:
    """Placeholder for an input whose chunk failed during batch inference."""
    batch_index: int
    error:       str = BATCH_FAILURE_MESSAGE


# ---------------------------------------------------------------------------
# Prediction schemas
# ---------------------------------------------------------------------------

class _LabelPrediction(LenientSchema):
    predicted_label: str | None              = None
    confidence:      float | None            = None
    scores:          Any                     = None    # dict or list, model-dependent


class _Entity(LenientSchema):
    text:       str | None   = None
    label:      str | None   = None
    confidence: float | None = None
    start:      int | None   = None
    end:        int | None   = None


class _EntityPrediction(LenientSchema):
    entities: list[Any] | None = None     # each entity validated on its own


class _EmbeddingPrediction(LenientSchema):
    embedding: list[float] | None = None


_VECTOR = TypeAdapter(list[float])


def _predictions(body: Any) -> list[Any]:
    if not isinstance(body, dict):
        return []
    predictions = body.get("predictions")
    return predictions if isinstance(predictions, list) else []


def _first_prediction(body: Any) -> Any:
    predictions = _predictions(body)
    return predictions[0] if predictions else None


def _embedding_vector(prediction: Any) -> list[float]:
    """A bare vector or ``{"embedding": [...]}``; anything else is []."""
    if isinstance(prediction, dict):
        return parse_lenient(_EmbeddingPrediction, prediction).embedding or []
    try:
        return _VECTOR.validate_python(prediction)
    except ValidationError:
        logger.warning("Embedding prediction is not a vector | type=%s", type(prediction).__name__)
        return []


# ---------------------------------------------------------------------------
# SageMakerService
# ---------------------------------------------------------------------------

class SageMakerService:
    """
    Async SageMaker runtime operations.

    Holds only the settings and a transport; safe for concurrent use.
    """

    def __init__(self, settings: Settings, runtime: InvokeTransport | None = None) -> None:
        self._settings = settings
        self._runtime  = runtime or SageMakerRuntimeTransport.from_settings(settings)

    # ------------------------------------------------------------------
    # Endpoint invocation
    # ------------------------------------------------------------------

    async def invoke_endpoint(
        self,
        endpoint_name:     str,
        payload:           Any,
        content_type:      str | None = None,
        accept:            str | None = None,
        custom_attributes: str | None = None,
        target_model:      str | None = None,
        target_variant:    str | None = None,
        inference_id:      str | None = None,
    ) -> EndpointInvocationResult:
        """
        Invoke a deployed endpoint with a JSON payload.

        Raises:
            TransportError: the call failed or the body was not valid JSON.
        """
        t0 = time.perf_counter()
        try:
            raw = await self._runtime.invoke(
                endpoint_name,
                json.dumps(payload).encode("utf-8"),
                content_type=content_type or JSON_CONTENT_TYPE,
                accept=accept or JSON_CONTENT_TYPE,
                custom_attributes=custom_attributes,
                target_model=target_model,
                target_variant=target_variant,
                inference_id=inference_id,
            )
            body = json.loads(raw.body) if raw.body else {}
        except Exception as exc:
            duration_ms = (time.perf_counter() - t0) * 1000
            logger.error(
                "SageMaker endpoint invocation failed | endpoint_name=%s duration_ms=%.1f error=%s",
                endpoint_name, duration_ms, exc,
            )
            raise TransportError(
                operation="invoke_endpoint",
                target=endpoint_name,
                duration_ms=duration_ms,
                original=exc,
            ) from exc

        duration_ms = (time.perf_counter() - t0) * 1000
        logger.info(
            "SageMaker endpoint invocation completed | endpoint_name=%s duration_ms=%.1f "
            "content_length=%d custom_attributes=%s",
            endpoint_name, duration_ms, len(raw.body), custom_attributes,
        )

        return EndpointInvocationResult(
            body=body,
            content_type=raw.content_type,
            custom_attributes=raw.custom_attributes,
            invoked_production_variant=raw.invoked_variant,
            metadata=EndpointInvocationMetadata(
                endpoint_name=endpoint_name,
                duration_ms=duration_ms,
                timestamp=datetime.now(timezone.utc),
            ),
        )

    # ------------------------------------------------------------------
    # Derived tasks
    # ------------------------------------------------------------------

    def _resolve_endpoint(self, explicit: str | None, configured: str, task: str) -> str:
        endpoint = explicit or configured
        if not endpoint:
            raise MissingEndpointConfigurationError(task)
        return endpoint

    @traced("sagemaker.classify_document")
    async def classify_document(
        self,
        document_content: str,
        endpoint_name:    str | None = None,
    ) -> DocumentClassification:
        endpoint = self._resolve_endpoint(
            endpoint_name,
            self._settings.sagemaker_document_classifier_endpoint,
            "Document classifier",
        )

        response = await self.invoke_endpoint(endpoint, {
            "instances": [{"text": document_content, "max_length": CLASSIFIER_MAX_LENGTH}],
        })
        prediction = parse_lenient(_LabelPrediction, _first_prediction(response.body))

        return DocumentClassification(
            classification=prediction.predicted_label or "unknown",
            confidence=prediction.confidence or 0.0,
            metadata={
                "scores":             prediction.scores or {},
                "processing_time_ms": response.metadata.duration_ms,
            },
        )

    @traced("sagemaker.extract_entities")
    async def extract_entities(
        self,
        text:          str,
        endpoint_name: str | None = None,
    ) -> list[EntityMention]:
        endpoint = self._resolve_endpoint(
            endpoint_name,
            self._settings.sagemaker_ner_endpoint,
            "Named Entity Recognition",
        )

        response = await self.invoke_endpoint(endpoint, {
            "instances": [{"text": text, "return_offsets": True}],
        })
        prediction = parse_lenient(_EntityPrediction, _first_prediction(response.body))
        entities   = [
            parse_lenient(_Entity, raw)
            for raw in prediction.entities or []
            if isinstance(raw, dict)
        ]

        return [
            EntityMention(
                entity=entity.text or "",
                type=entity.label or "unknown",
                confidence=entity.confidence or 0.0,
                start=entity.start or 0,
                end=entity.end or 0,
            )
            for entity in entities
        ]

    @traced("sagemaker.generate_embeddings")
    async def generate_embeddings(
        self,
        texts:         Sequence[str],
        endpoint_name: str | None = None,
    ) -> list[list[float]]:
        endpoint = self._resolve_endpoint(
            endpoint_name,
            self._settings.sagemaker_embedding_endpoint,
            "Embedding",
        )

        response = await self.invoke_endpoint(endpoint, {
            "instances": [{"text": text} for text in texts],
        })
        return [_embedding_vector(prediction) for prediction in _predictions(response.body)]

    @traced("sagemaker.analyze_sentiment")
    async def analyze_sentiment(
        self,
        text:          str,
        endpoint_name: str | None = None,
    ) -> SentimentResult:
        endpoint = self._resolve_endpoint(
            endpoint_name,
            self._settings.sagemaker_sentiment_endpoint,
            "Sentiment analysis",
        )

        response = await self.invoke_endpoint(endpoint, {
            "instances": [{"text": text, "return_all_scores": True}],
        })
        prediction = parse_lenient(_LabelPrediction, _first_prediction(response.body))

        return SentimentResult(
            sentiment=prediction.predicted_label or "neutral",
            confidence=prediction.confidence or 0.0,
            scores=prediction.scores or {},
        )

    # ------------------------------------------------------------------
    # Batch inference
    # ------------------------------------------------------------------

    async def perform_batch_inference(
        self,
        endpoint_name: str,
        inputs:        Sequence[Any],
        batch_size:    int | None = None,
        concurrency:   int | None = None,
    ) -> list[Any]:
        """
        Run `inputs` through `endpoint_name` in ordered chunks.

        Returns:
            One entry per input, in input order: the endpoint's prediction, or
            a FailedPrediction when that input's chunk failed.

        Raises:
            ValueError: batch_size < 1.
        """
        size = self._settings.batch_inference_size if batch_size is None else batch_size
        if size < 1:
            raise ValueError(f"batch_size must be >= 1, got {size}")
        limit = self._settings.batch_inference_concurrency if concurrency is None else concurrency
        semaphore = asyncio.Semaphore(max(1, limit))

        chunks = [list(inputs[i : i + size]) for i in range(0, len(inputs), size)]

        async def _run(batch_index: int, chunk: list[Any]) -> list[Any]:
            async with semaphore:
                return await self._invoke_chunk(endpoint_name, batch_index, chunk)

        chunk_results = await asyncio.gather(
            *(_run(batch_index, chunk) for batch_index, chunk in enumerate(chunks))
        )

        results: list[Any] = []
        for chunk_result in chunk_results:
            results.extend(chunk_result)

        failed = sum(
            1 for chunk_result in chunk_results
            if chunk_result and isinstance(chunk_result[0], FailedPrediction)
        )
        logger.info(
            "Batch inference done | endpoint_name=%s inputs=%d batches=%d failed_batches=%d",
            endpoint_name, len(inputs), len(chunks), failed,
        )
        return results

    async def _invoke_chunk(
        self,
        endpoint_name: str,
        batch_index:   int,
        chunk:         list[Any],
    ) -> list[Any]:
        """One chunk → its predictions, or placeholders if it failed."""
        try:
            response = await self.invoke_endpoint(endpoint_name, {"instances": chunk})
        except TransportError as exc:
            logger.error(
                "Batch inference failed | endpoint_name=%s batch_index=%d error=%s",
                endpoint_name, batch_index, exc.original,
            )
            return [FailedPrediction(batch_index=batch_index) for _ in chunk]

        predictions = _predictions(response.body)
        if len(predictions) != len(chunk):
            logger.error(
                "Batch inference size mismatch | endpoint_name=%s batch_index=%d "
                "inputs=%d predictions=%d",
                endpoint_name, batch_index, len(chunk), len(predictions),
            )
            return [FailedPrediction(batch_index=batch_index) for _ in chunk]

        return predictions
