"""
Gateway exception hierarchy.

Classification and configuration errors are raised before any network call.
Transport failures are wrapped once, carrying the original backend exception
and the elapsed wall time, and are never retried here.
"""

from __future__ import annotations


class InferenceGatewayError(Exception):
    """Base class for every error raised by the gateway."""


class UnsupportedProviderError(InferenceGatewayError):
    """The model identifier did not classify to a supported provider family."""

    def __init__(self, model_id: str, family: str = "unknown") -> None:
        self.model_id = model_id
        self.family   = family
        super().__init__(f"Unsupported model provider: {family} (model_id={model_id})")


class MissingEndpointConfigurationError(InferenceGatewayError):
    """A derived task has neither an explicit nor a configured default endpoint."""

    def __init__(self, task: str) -> None:
        self.task = task
        super().__init__(f"{task} endpoint not configured")


class TransportError(InferenceGatewayError):
    """
    The backend call itself failed (network, throttling, backend-side error).

    `original` is the exception raised by the transport; it is also chained
    as __cause__ when raised with `raise ... from exc`.
    """

    def __init__(
        self,
        operation:   str,
        target:      str,
        duration_ms: float,
        original:    BaseException,
    ) -> None:
        self.operation   = operation
        self.target      = target
        self.duration_ms = duration_ms
        self.original    = original
        super().__init__(
            f"{operation} failed for {target} after {duration_ms:.1f}ms: "
            f"{type(original).__name__}: {original}"
        )


class StreamPreconditionError(InferenceGatewayError):
    """The backend accepted a streaming request but returned no stream body."""

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(
            f"No response body received from streaming invocation (model_id={model_id})"
        )
