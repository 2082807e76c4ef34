"""
LLM Invocation Package

Provides one uniform contract over the Bedrock model families:
  - Anthropic Claude   (messages API)
  - Amazon Titan       (inputText / textGenerationConfig)
  - AI21 Jurassic      (prompt / completions)
  - Cohere Command     (prompt / generations)
  - Meta Llama         (prompt / generation)

Public API::

    from inference_gateway.llm import BedrockService

    service = BedrockService(settings)
    result  = await service.invoke_model(model_id, "Hello", GenerationOptions(max_tokens=256))
    # or
    async with await service.invoke_model_stream(model_id, "Hello") as stream:
        async for fragment in stream:
            ...
"""

from inference_gateway.llm.bedrock import BedrockService, FoundationModel, InvocationMetadata, InvocationResult
from inference_gateway.llm.providers import ProviderFamily, classify
from inference_gateway.llm.streaming import StreamHandle, StreamMetadata
from inference_gateway.llm.usage import TokenUsage, estimate_tokens

__all__ = [
    "BedrockService",
    "FoundationModel",
    "InvocationMetadata",
    "InvocationResult",
    "ProviderFamily",
    "StreamHandle",
    "StreamMetadata",
    "TokenUsage",
    "classify",
    "estimate_tokens",
]
