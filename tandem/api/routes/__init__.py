"""API route registration."""

from fastapi import APIRouter, FastAPI

from tandem.observability.logging import get_logger

logger = get_logger(__name__)


def create_v1_router() -> APIRouter:
    """Create the v1 API router with all routes."""
    router = APIRouter(prefix="/v1")

    from tandem.api.routes.sessions import router as sessions_router

    router.include_router(sessions_router, tags=["Sessions"])

    logger.debug("v1_router_created", routes=["sessions"])
    return router


def register_routes(app: FastAPI, metrics_path: str | None = "/metrics") -> None:
    """Register all routes with the FastAPI application.

    Args:
        app: FastAPI application instance
        metrics_path: Where to expose Prometheus metrics; None disables them
    """
    app.include_router(create_v1_router())

    # Health and metrics at root level
    from tandem.api.routes.health import get_metrics
    from tandem.api.routes.health import router as health_router

    app.include_router(health_router, tags=["Health"])
    if metrics_path:
        app.add_api_route(metrics_path, get_metrics, methods=["GET"], tags=["Health"])

    logger.info("routes_registered", metrics_path=metrics_path)
