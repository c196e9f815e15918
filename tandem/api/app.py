"""FastAPI application factory.

Creates and configures the FastAPI application with middleware,
exception handlers, route registration and the background liveness
components.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tandem import __version__
from tandem.api.dependencies import (
    get_archiver,
    get_ledger,
    get_notifier,
    get_service,
    get_settings,
    get_store,
    reset_dependencies,
)
from tandem.api.exceptions import TandemAPIError
from tandem.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from tandem.api.routes import register_routes
from tandem.conversation.errors import NotFoundError, StoreError
from tandem.conversation.models import ParticipantSlot
from tandem.conversation.service import ConversationService
from tandem.conversation.stores import RedisConversationStore
from tandem.observability.logging import get_logger, setup_logging
from tandem.observability.middleware import LoggingContextMiddleware
from tandem.presence import ActiveSession, SystemEventNotifier

logger = get_logger(__name__)


def _watch_active_sessions(
    notifier: SystemEventNotifier,
    service: ConversationService | None = None,
) -> Callable[[list[ActiveSession]], Awaitable[None]]:
    """Keep the notifier watching both slots of every active session.

    A session drops out of the view when it is archived, typically because
    both clients vanished. Its slots get a last evaluation before they are
    unwatched so the departures are still announced.
    """

    async def listener(view: list[ActiveSession]) -> None:
        active = {entry.session_id for entry in view}
        departed: set[str] = set()
        for session_id, slot in notifier.watched:
            if session_id not in active:
                await notifier.evaluate(session_id, slot)
                notifier.unwatch(session_id, slot)
                departed.add(session_id)
        if service is not None:
            for session_id in departed:
                service.release(session_id)
        for session_id in active:
            for slot in ParticipantSlot:
                notifier.watch(session_id, slot)
        await notifier.evaluate_all()

    return listener


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the archiver, oversight notifier and change relay."""
    settings = get_settings()
    store = get_store(settings)
    service = get_service(settings, store, get_ledger(settings))
    archiver = get_archiver(settings, store)
    notifier = get_notifier(service)

    if isinstance(store, RedisConversationStore):
        await store.start()

    unsubscribe = None
    if settings.api.run_archiver:
        unsubscribe = archiver.on_update(_watch_active_sessions(notifier, service))
        await notifier.start()
        await archiver.start()

    logger.info("app_started", run_archiver=settings.api.run_archiver)
    try:
        yield
    finally:
        if unsubscribe is not None:
            unsubscribe()
            await archiver.stop()
            await notifier.stop()
        if isinstance(store, RedisConversationStore):
            await store.stop()
        await reset_dependencies()
        logger.info("app_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a fully configured FastAPI app with:
    - CORS middleware
    - Request logging context middleware
    - Global exception handlers
    - All API routes registered

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()
    setup_logging(settings.observability.logging, app_name=settings.app_name)

    app = FastAPI(
        title="Tandem API",
        description="Session liveness and interaction pacing for paired conversations",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=settings.api.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingContextMiddleware)

    _register_exception_handlers(app)
    metrics = settings.observability.metrics
    register_routes(app, metrics.path if metrics.enabled else None)

    logger.info("app_created", debug=settings.debug, cors_origins=settings.api.cors_origins)
    return app


def _error_response(status_code: int, body: ErrorBody) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=body).model_dump(mode="json", exclude_none=True),
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(TandemAPIError)
    async def tandem_api_error_handler(request: Request, exc: TandemAPIError) -> JSONResponse:
        logger.warning(
            "api_error",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        return _error_response(exc.status_code, ErrorBody(code=exc.error_code, message=exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("validation_error", errors=exc.errors(), path=request.url.path)

        details = [
            ErrorDetail(field=".".join(str(loc) for loc in error["loc"]), message=error["msg"])
            for error in exc.errors()
        ]
        return _error_response(
            400,
            ErrorBody(
                code=ErrorCode.INVALID_REQUEST,
                message="Request validation failed",
                details=details,
            ),
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        """Store failures never reach clients with their text."""
        if isinstance(exc, NotFoundError):
            return _error_response(
                404, ErrorBody(code=ErrorCode.SESSION_NOT_FOUND, message="Session not found")
            )
        logger.error("store_error", error=str(exc), path=request.url.path)
        return _error_response(
            503,
            ErrorBody(
                code=ErrorCode.STORE_UNAVAILABLE,
                message="Conversation store unavailable",
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(
            500,
            ErrorBody(code=ErrorCode.INTERNAL_ERROR, message="An unexpected error occurred"),
        )

    logger.debug("exception_handlers_registered")


# Create the app instance for uvicorn
app = create_app()
