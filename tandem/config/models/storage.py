"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "redis"]


class StorageConfig(BaseModel):
    """Configuration for the shared conversation store."""

    backend: BackendType = Field(
        default="inmemory",
        description="Backend type",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (REDIS_URL env var takes precedence)",
    )
    key_prefix: str = Field(
        default="tandem",
        description="Prefix for all Redis keys and channels",
    )
    event_key_ttl_seconds: int = Field(
        default=604800,  # 7 days
        gt=0,
        description="TTL for claimed system event keys",
    )
