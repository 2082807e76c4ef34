"""
Endpoint Directory & Health Check

Read-only view over deployed SageMaker endpoints. Nothing is cached: every
call goes to the control plane and returns a fresh snapshot.

  list_endpoints()           → InService endpoints only (first page, max 100)
  describe_endpoint(name)    → full descriptor + round-trip latency of the call
  get_endpoint_health(name)  → HealthSnapshot; NEVER raises

Status handling:
  SageMaker reports more lifecycle states than callers care about. The raw
  string is kept on every descriptor; EndpointStatus folds it into a closed
  set for programmatic checks. Healthy means exactly "InService".
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from inference_gateway.aws.transport import EndpointCatalog, SageMakerCatalogTransport
from inference_gateway.core.config import Settings

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE      = 100
HEALTH_ERROR_STATUS = "Error"


class EndpointStatus(str, Enum):
    """Closed set of endpoint lifecycle states."""
    IN_SERVICE     = "InService"
    CREATING       = "Creating"
    UPDATING       = "Updating"
    FAILED         = "Failed"
    OUT_OF_SERVICE = "OutOfService"
    UNKNOWN        = "Unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "EndpointStatus":
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw)
        except ValueError:
            return _STATUS_ALIASES.get(raw, cls.UNKNOWN)


# Remaining SageMaker states, folded into the closed set
_STATUS_ALIASES: dict[str, EndpointStatus] = {
    "SystemUpdating":       EndpointStatus.UPDATING,
    "RollingBack":          EndpointStatus.UPDATING,
    "UpdateRollbackFailed": EndpointStatus.FAILED,
    "Deleting":             EndpointStatus.OUT_OF_SERVICE,
}


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EndpointDescriptor:
    name:          str
    status:        str               # raw status string reported by SageMaker
    creation_time: datetime | None

    @property
    def state(self) -> EndpointStatus:
        return EndpointStatus.parse(self.status)


@dataclass(frozen=True)
class EndpointDetail:
    name:                str
    arn:                 str | None
    status:              str
    creation_time:       datetime | None
    last_modified_time:  datetime | None
    production_variants: list[dict[str, Any]] = field(default_factory=list)
    data_capture_config: dict[str, Any] | None = None
    response_time_ms:    float = 0.0     # latency of the describe call itself

    @property
    def state(self) -> EndpointStatus:
        return EndpointStatus.parse(self.status)


@dataclass(frozen=True)
class HealthSnapshot:
    healthy:          bool
    status:           str
    checked_at:       datetime
    response_time_ms: float | None = None   # absent when the check itself failed


# ---------------------------------------------------------------------------
# EndpointDirectory
# ---------------------------------------------------------------------------

class EndpointDirectory:
    """Lists, describes and health-checks SageMaker endpoints."""

    def __init__(self, settings: Settings, catalog: EndpointCatalog | None = None) -> None:
        self._settings = settings
        self._catalog  = catalog or SageMakerCatalogTransport.from_settings(settings)

    async def list_endpoints(self) -> list[EndpointDescriptor]:
        """In-service endpoints only, reduced to name / status / creation time."""
        try:
            endpoints = await self._catalog.list_endpoints(
                status_equals=EndpointStatus.IN_SERVICE.value,
                max_results=LIST_PAGE_SIZE,
            )
        except Exception as exc:
            logger.error("Failed to list endpoints | error=%s", exc)
            raise

        return [
            EndpointDescriptor(
                name=endpoint.get("EndpointName", ""),
                status=endpoint.get("EndpointStatus", EndpointStatus.UNKNOWN.value),
                creation_time=endpoint.get("CreationTime"),
            )
            for endpoint in endpoints[:LIST_PAGE_SIZE]
        ]

    async def describe_endpoint(self, name: str) -> EndpointDetail:
        """
        Full endpoint descriptor, annotated with the describe round-trip time.

        Raises:
            Whatever the control-plane client raised (logged first).
        """
        t0 = time.perf_counter()
        try:
            resp = await self._catalog.describe_endpoint(name)
        except Exception as exc:
            logger.error("Failed to describe endpoint | endpoint_name=%s error=%s", name, exc)
            raise
        response_time_ms = (time.perf_counter() - t0) * 1000

        return EndpointDetail(
            name=resp.get("EndpointName", name),
            arn=resp.get("EndpointArn"),
            status=resp.get("EndpointStatus", EndpointStatus.UNKNOWN.value),
            creation_time=resp.get("CreationTime"),
            last_modified_time=resp.get("LastModifiedTime"),
            production_variants=list(resp.get("ProductionVariants") or []),
            data_capture_config=resp.get("DataCaptureConfig"),
            response_time_ms=response_time_ms,
        )

    async def get_endpoint_health(self, name: str) -> HealthSnapshot:
        """Binary health signal. Any failure becomes healthy=False, status="Error"."""
        try:
            detail = await self.describe_endpoint(name)
        except Exception as exc:
            logger.error("Health check failed | endpoint_name=%s error=%s", name, exc)
            return HealthSnapshot(
                healthy=False,
                status=HEALTH_ERROR_STATUS,
                checked_at=datetime.now(timezone.utc),
            )

        return HealthSnapshot(
            healthy=detail.state is EndpointStatus.IN_SERVICE,
            status=detail.status,
            checked_at=datetime.now(timezone.utc),
            response_time_ms=detail.response_time_ms,
        )
