"""
Tasks API — derived NLP tasks on SageMaker endpoints

POST /api/v1/tasks/classify     → DocumentClassification
POST /api/v1/tasks/entities     → list[EntityMention]
POST /api/v1/tasks/embeddings   → {"embeddings": [[float, ...], ...]}
POST /api/v1/tasks/sentiment    → SentimentResult

`endpoint_name` is optional on every request; without it the configured
default is used, and without a default the call fails with 503
(ENDPOINT_NOT_CONFIGURED) before any backend call.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from inference_gateway.api.dependencies import get_sagemaker_service
from inference_gateway.sagemaker.service import (
    DocumentClassification,
    EntityMention,
    SageMakerService,
    SentimentResult,
)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


class TextTaskRequest(BaseModel):
    text:          str        = Field(..., min_length=1)
    endpoint_name: str | None = None


class EmbeddingTaskRequest(BaseModel):
    texts:         list[str]  = Field(..., min_length=1)
    endpoint_name: str | None = None


class EmbeddingTaskResponse(BaseModel):
    embeddings: list[list[float]]


@router.post("/classify", summary="Classify a document")
async def classify_document(
    body:    TextTaskRequest,
    service: SageMakerService = Depends(get_sagemaker_service),
) -> DocumentClassification:
    return await service.classify_document(body.text, body.endpoint_name)


@router.post("/entities", summary="Extract named entities")
async def extract_entities(
    body:    TextTaskRequest,
    service: SageMakerService = Depends(get_sagemaker_service),
) -> list[EntityMention]:
    return await service.extract_entities(body.text, body.endpoint_name)


@router.post("/embeddings", response_model=EmbeddingTaskResponse, summary="Generate embeddings")
async def generate_embeddings(
    body:    EmbeddingTaskRequest,
    service: SageMakerService = Depends(get_sagemaker_service),
) -> EmbeddingTaskResponse:
    embeddings = await service.generate_embeddings(body.texts, body.endpoint_name)
    return EmbeddingTaskResponse(embeddings=embeddings)


@router.post("/sentiment", summary="Analyze sentiment")
async def analyze_sentiment(
    body:    TextTaskRequest,
    service: SageMakerService = Depends(get_sagemaker_service),
) -> SentimentResult:
    return await service.analyze_sentiment(body.text, body.endpoint_name)
