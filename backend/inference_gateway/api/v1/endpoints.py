"""
Endpoints API — SageMaker endpoint directory, health and invocation

GET  /api/v1/endpoints                  → in-service endpoints (max 100)
GET  /api/v1/endpoints/{name}           → full descriptor + describe latency
GET  /api/v1/endpoints/{name}/health    → HealthSnapshot (always 200)
POST /api/v1/endpoints/{name}/invoke    → raw endpoint invocation
POST /api/v1/endpoints/{name}/batch     → chunked batch inference
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from inference_gateway.api.dependencies import get_endpoint_directory, get_sagemaker_service
from inference_gateway.sagemaker.directory import (
    EndpointDescriptor,
    EndpointDetail,
    EndpointDirectory,
    HealthSnapshot,
)
from inference_gateway.sagemaker.service import EndpointInvocationResult, FailedPrediction, SageMakerService
from inference_gateway.schemas.inference import EndpointInvocationRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/endpoints", tags=["Endpoints"])


class BatchInferenceRequest(BaseModel):
    inputs:      list[Any]  = Field(..., description="Instances, one per prediction.")
    batch_size:  int | None = Field(None, ge=1, le=1_000)
    concurrency: int | None = Field(None, ge=1, le=16)


class BatchInferenceResponse(BaseModel):
    endpoint_name: str
    predictions:   list[Any]
    failed:        int


@router.get("", summary="List in-service endpoints")
async def list_endpoints(
    directory: EndpointDirectory = Depends(get_endpoint_directory),
) -> list[EndpointDescriptor]:
    return await directory.list_endpoints()


@router.get("/{name}", summary="Describe an endpoint")
async def describe_endpoint(
    name:      str,
    directory: EndpointDirectory = Depends(get_endpoint_directory),
) -> EndpointDetail:
    return await directory.describe_endpoint(name)


@router.get(
    "/{name}/health",
    summary="Endpoint health",
    description="Never fails: an unreachable endpoint reports healthy=false, status=Error.",
)
async def endpoint_health(
    name:      str,
    directory: EndpointDirectory = Depends(get_endpoint_directory),
) -> HealthSnapshot:
    return await directory.get_endpoint_health(name)


@router.post("/{name}/invoke", summary="Invoke an endpoint")
async def invoke_endpoint(
    name:    str,
    body:    EndpointInvocationRequest,
    service: SageMakerService = Depends(get_sagemaker_service),
) -> EndpointInvocationResult:
    return await service.invoke_endpoint(
        name,
        body.payload,
        content_type=body.content_type,
        accept=body.accept,
        custom_attributes=body.custom_attributes,
        target_model=body.target_model,
        target_variant=body.target_variant,
        inference_id=body.inference_id,
    )


@router.post(
    "/{name}/batch",
    response_model=BatchInferenceResponse,
    summary="Batch inference",
    description="Failed chunks are returned as placeholders; output order matches input order.",
)
async def batch_inference(
    name:    str,
    body:    BatchInferenceRequest,
    service: SageMakerService = Depends(get_sagemaker_service),
) -> BatchInferenceResponse:
    results = await service.perform_batch_inference(
        name,
        body.inputs,
        batch_size=body.batch_size,
        concurrency=body.concurrency,
    )
    failed = sum(1 for item in results if isinstance(item, FailedPrediction))
    return BatchInferenceResponse(
        endpoint_name=name,
        predictions=[asdict(item) if isinstance(item, FailedPrediction) else item for item in results],
        failed=failed,
    )
