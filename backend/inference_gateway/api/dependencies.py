"""
FastAPI dependencies — service singletons built from Settings

Services hold no per-request state, so one instance per process is enough.
Tests replace them through app.dependency_overrides.
"""

from __future__ import annotations

from functools import lru_cache

from inference_gateway.core.config import get_settings
from inference_gateway.llm.bedrock import BedrockService
from inference_gateway.sagemaker.directory import EndpointDirectory
from inference_gateway.sagemaker.service import SageMakerService


@lru_cache(maxsize=1)
def get_bedrock_service() -> BedrockService:
    return BedrockService(get_settings())


@lru_cache(maxsize=1)
def get_sagemaker_service() -> SageMakerService:
    return SageMakerService(get_settings())


@lru_cache(maxsize=1)
def get_endpoint_directory() -> EndpointDirectory:
    return EndpointDirectory(get_settings())
