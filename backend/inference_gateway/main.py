"""
FastAPI Application — Entry Point

Inference Gateway API

Architecture:
  - All routes are versioned under /api/v1/
  - Services (Bedrock, SageMaker, endpoint directory) are process-wide
    singletons injected via FastAPI dependencies
  - Structured JSON error responses on all 4xx/5xx

Error mapping:
  UnsupportedProviderError           → 422 UNSUPPORTED_PROVIDER
  MissingEndpointConfigurationError  → 503 ENDPOINT_NOT_CONFIGURED
  StreamPreconditionError            → 502 STREAM_UNAVAILABLE
  TransportError                     → 502 BACKEND_ERROR
  RequestValidationError             → 422 VALIDATION_ERROR
  anything else                      → 500 INTERNAL_ERROR

Middleware stack:
  1. GZip — compress responses > 1 KB
  2. Request ID injection + request logging with latency
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from inference_gateway.api.v1.endpoints import router as endpoints_router
from inference_gateway.api.v1.models import router as models_router
from inference_gateway.api.v1.tasks import router as tasks_router
from inference_gateway.core.config import get_settings
from inference_gateway.core.exceptions import (
    MissingEndpointConfigurationError,
    StreamPreconditionError,
    TransportError,
    UnsupportedProviderError,
)
from inference_gateway.schemas.inference import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


# ---------------------------------------------------------------------------
# Application lifespan — startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting Inference Gateway | env=%s aws_region=%s bedrock_region=%s",
        settings.app_env, settings.aws_region, settings.effective_bedrock_region,
    )
    configured = {
        "document_classifier": bool(settings.sagemaker_document_classifier_endpoint),
        "ner":                 bool(settings.sagemaker_ner_endpoint),
        "embedding":           bool(settings.sagemaker_embedding_endpoint),
        "sentiment":           bool(settings.sagemaker_sentiment_endpoint),
    }
    logger.info("Default task endpoints configured: %s", configured)

    yield

    logger.info("Shutting down Inference Gateway")


def _error(
    status_code: int,
    error_code:  str,
    message:     str,
    request:     Request,
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        request_id=request.headers.get("X-Request-ID"),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="Inference Gateway",
        description=(
            "Uniform invocation API over Bedrock foundation models and "
            "SageMaker inference endpoints."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers — uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic/FastAPI validation errors to structured ErrorResponse."""
        details = [
            ErrorDetail(
                field=" → ".join(str(loc) for loc in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        body = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=details,
            request_id=request.headers.get("X-Request-ID"),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=body.model_dump(mode="json"),
        )

    @app.exception_handler(UnsupportedProviderError)
    async def unsupported_provider_handler(request: Request, exc: UnsupportedProviderError):
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "UNSUPPORTED_PROVIDER", str(exc), request)

    @app.exception_handler(MissingEndpointConfigurationError)
    async def missing_endpoint_handler(request: Request, exc: MissingEndpointConfigurationError):
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "ENDPOINT_NOT_CONFIGURED", str(exc), request)

    @app.exception_handler(StreamPreconditionError)
    async def stream_precondition_handler(request: Request, exc: StreamPreconditionError):
        return _error(status.HTTP_502_BAD_GATEWAY, "STREAM_UNAVAILABLE", str(exc), request)

    @app.exception_handler(TransportError)
    async def transport_error_handler(request: Request, exc: TransportError):
        return _error(status.HTTP_502_BAD_GATEWAY, "BACKEND_ERROR", str(exc), request)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        body = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(models_router,    prefix="/api/v1")
    app.include_router(endpoints_router, prefix="/api/v1")
    app.include_router(tasks_router,     prefix="/api/v1")

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness check",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "inference-gateway"}

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inference_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
