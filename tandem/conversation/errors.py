"""Store error hierarchy.

All store implementations raise these errors so callers can handle
backend failures uniformly.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when the backing store cannot be reached.

    Examples:
        - Redis server unavailable
        - Network timeouts
    """

    pass


class NotFoundError(StoreError):
    """Raised when a specific session lookup fails."""

    pass
