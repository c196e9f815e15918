"""Health check and metrics endpoints."""

import time
from datetime import UTC, datetime
from typing import Literal

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tandem import __version__
from tandem.api.dependencies import ArchiverDep, StoreDep
from tandem.api.models.health import ComponentHealth, HealthResponse
from tandem.conversation.store import ConversationStore
from tandem.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _check_store_health(store: ConversationStore) -> ComponentHealth:
    """Probe the store with a cheap read."""
    start = time.time()
    try:
        await store.list_active_sessions()
    except Exception as e:
        return ComponentHealth(
            name="conversation_store",
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message=str(e),
        )
    return ComponentHealth(
        name="conversation_store",
        status="healthy",
        latency_ms=(time.time() - start) * 1000,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(store: StoreDep, archiver: ArchiverDep) -> HealthResponse:
    """Check service health status.

    The archiver is reported degraded, not unhealthy, when it is not
    subscribed: listings still archive on demand.
    """
    logger.debug("health_check_request")

    components = [
        await _check_store_health(store),
        ComponentHealth(
            name="session_archiver",
            status="healthy" if archiver.running else "degraded",
            message=None if archiver.running else "Not running; archival happens on listing",
        ),
    ]

    overall_status: Literal["healthy", "degraded", "unhealthy"]
    if any(c.status == "unhealthy" for c in components):
        overall_status = "unhealthy"
    elif any(c.status == "degraded" for c in components):
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    logger.debug("health_check_completed", status=overall_status)
    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
        timestamp=datetime.now(UTC),
    )


async def get_metrics() -> Response:
    """Prometheus metrics in text format for scraping."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
