"""Exception types raised by notion-retrieval."""


class NotionRetrievalError(RuntimeError):
    """Base class for all errors raised by this package."""


class NotConfiguredError(NotionRetrievalError):
    """No Notion API token is available; nothing can be fetched."""


class ApiError(NotionRetrievalError):
    """A single remote call failed (network, rate limit, not found, ...).

    Callers catch this at the smallest useful granularity and skip the item.
    """

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
