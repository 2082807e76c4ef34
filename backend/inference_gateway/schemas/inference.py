"""
Inference Gateway — Pydantic Request Schemas + Error Envelope

GenerationOptions and InvocationRequest are shared by the library layer
(BedrockService) and the HTTP layer, so the API validates exactly what the
translator consumes.

Design decisions:
  - Every generation option is optional; None means "use the provider default",
    so explicit zeros (temperature=0.0) survive translation.
  - Requests are frozen: created per call, never mutated.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Defaults applied by the translator when an option is absent
# ---------------------------------------------------------------------------

DEFAULT_MAX_TOKENS:  int   = 4000
DEFAULT_TEMPERATURE: float = 0.7
DEFAULT_TOP_P:       float = 0.9


class GenerationOptions(BaseModel):
    """Provider-neutral sampling options."""
    model_config = ConfigDict(frozen=True)

    max_tokens:        int | None       = Field(None, ge=1, description="Upper bound on generated tokens")
    temperature:       float | None     = Field(None, ge=0.0, le=2.0)
    top_p:             float | None     = Field(None, ge=0.0, le=1.0)
    top_k:             int | None       = Field(None, ge=0)
    stop_sequences:    list[str] | None = None
    presence_penalty:  float | None     = None
    frequency_penalty: float | None     = None
    seed:              int | None       = None

    # The translator reads these, never the raw fields

    @property
    def resolved_max_tokens(self) -> int:
        return DEFAULT_MAX_TOKENS if self.max_tokens is None else self.max_tokens

    @property
    def resolved_temperature(self) -> float:
        return DEFAULT_TEMPERATURE if self.temperature is None else self.temperature

    @property
    def resolved_top_p(self) -> float:
        return DEFAULT_TOP_P if self.top_p is None else self.top_p

    @property
    def resolved_stop_sequences(self) -> list[str]:
        return list(self.stop_sequences or [])


class InvocationRequest(BaseModel):
    """A single inference call intent."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_id: str = Field(
        ...,
        min_length=1,
        description="Backend model identifier, e.g. anthropic.claude-3-haiku-20240307-v1:0",
    )
    prompt:   str = Field(..., description="Prompt text sent to the model.")
    options:  GenerationOptions = Field(default_factory=GenerationOptions)


class EndpointInvocationRequest(BaseModel):
    """Raw payload + transport hints for a SageMaker endpoint call."""
    payload:           Any
    content_type:      str | None = None
    accept:            str | None = None
    custom_attributes: str | None = None
    target_model:      str | None = None
    target_variant:    str | None = None
    inference_id:      str | None = None


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str         = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")
