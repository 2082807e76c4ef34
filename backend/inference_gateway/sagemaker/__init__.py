"""
SageMaker Package

  SageMakerService   — endpoint invocation, derived NLP tasks, batch inference
  EndpointDirectory  — list / describe / health-check deployed endpoints
"""

from inference_gateway.sagemaker.directory import (
    EndpointDescriptor,
    EndpointDetail,
    EndpointDirectory,
    EndpointStatus,
    HealthSnapshot,
)
from inference_gateway.sagemaker.service import (
    DocumentClassification,
    EndpointInvocationResult,
    EntityMention,
    FailedPrediction,
    SageMakerService,
    SentimentResult,
)

__all__ = [
    "DocumentClassification",
    "EndpointDescriptor",
    "EndpointDetail",
    "EndpointDirectory",
    "EndpointInvocationResult",
    "EndpointStatus",
    "EntityMention",
    "FailedPrediction",
    "HealthSnapshot",
    "SageMakerService",
    "SentimentResult",
]
