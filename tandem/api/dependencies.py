"""Dependency injection for API routes.

Provides FastAPI dependencies for the store, ledger and coordinator
components. Instances are created once from settings and can be
overridden for testing.
"""

from functools import lru_cache
from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends

from tandem.config.loader import load_config
from tandem.config.settings import Settings, set_toml_config
from tandem.conversation.service import ConversationService
from tandem.conversation.store import ConversationStore
from tandem.conversation.stores import InMemoryConversationStore, RedisConversationStore
from tandem.idempotency import EventLedger, InMemoryEventLedger, RedisEventLedger
from tandem.observability.logging import get_logger
from tandem.presence import SessionArchiver, SystemEventNotifier

logger = get_logger(__name__)

_redis_client: redis.Redis | None = None
_store: ConversationStore | None = None
_ledger: EventLedger | None = None
_service: ConversationService | None = None
_archiver: SessionArchiver | None = None
_notifier: SystemEventNotifier | None = None


@lru_cache
def get_settings() -> Settings:
    """Get application settings.

    Loads configuration from TOML files and environment variables.
    Cached to avoid reloading on every request.
    """
    try:
        set_toml_config(load_config())
    except FileNotFoundError:
        logger.warning("config_file_not_found", msg="Using default configuration")
        set_toml_config({})

    return Settings()


def get_redis_client(settings: Settings) -> redis.Redis:
    """Get the shared Redis client, created on first access."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.storage.redis_url, decode_responses=True)
        # Log without credentials
        logger.info("redis_client_created", url=settings.storage.redis_url.split("@")[-1])
    return _redis_client


def get_store(settings: Annotated[Settings, Depends(get_settings)]) -> ConversationStore:
    """Get the ConversationStore for the configured backend."""
    global _store
    if _store is None:
        if settings.storage.backend == "redis":
            _store = RedisConversationStore(get_redis_client(settings), settings.storage)
        else:
            _store = InMemoryConversationStore()
        logger.info("conversation_store_initialized", store_type=settings.storage.backend)
    return _store


def get_ledger(settings: Annotated[Settings, Depends(get_settings)]) -> EventLedger:
    """Get the EventLedger matching the store backend."""
    global _ledger
    if _ledger is None:
        if settings.storage.backend == "redis":
            _ledger = RedisEventLedger(
                get_redis_client(settings),
                key_prefix=settings.storage.key_prefix,
                ttl_seconds=settings.storage.event_key_ttl_seconds,
            )
        else:
            _ledger = InMemoryEventLedger()
        logger.info("event_ledger_initialized", store_type=settings.storage.backend)
    return _ledger


def get_service(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[ConversationStore, Depends(get_store)],
    ledger: Annotated[EventLedger, Depends(get_ledger)],
) -> ConversationService:
    global _service
    if _service is None:
        _service = ConversationService(
            store,
            ledger,
            presence_config=settings.presence,
            pacing_config=settings.pacing,
        )
        logger.info("conversation_service_initialized")
    return _service


def get_archiver(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[ConversationStore, Depends(get_store)],
) -> SessionArchiver:
    global _archiver
    if _archiver is None:
        _archiver = SessionArchiver(store, settings.presence)
        logger.info("session_archiver_initialized")
    return _archiver


def get_notifier(
    service: Annotated[ConversationService, Depends(get_service)],
) -> SystemEventNotifier:
    """Get the oversight notifier that watches every active session."""
    global _notifier
    if _notifier is None:
        _notifier = service.new_notifier()
        logger.info("oversight_notifier_initialized")
    return _notifier


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
StoreDep = Annotated[ConversationStore, Depends(get_store)]
LedgerDep = Annotated[EventLedger, Depends(get_ledger)]
ServiceDep = Annotated[ConversationService, Depends(get_service)]
ArchiverDep = Annotated[SessionArchiver, Depends(get_archiver)]


async def reset_dependencies() -> None:
    """Reset all cached dependencies.

    Used for testing to ensure fresh instances.
    Closes connections before resetting.
    """
    global _redis_client, _store, _ledger, _service, _archiver, _notifier

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    _store = None
    _ledger = None
    _service = None
    _archiver = None
    _notifier = None
    get_settings.cache_clear()
