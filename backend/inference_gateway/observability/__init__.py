"""
Observability Package

Provides:
  traced — decorator for instrumenting async functions with span timing
"""

from inference_gateway.observability.tracing import traced

__all__ = ["traced"]
