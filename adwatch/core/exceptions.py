"""adwatch exception hierarchy."""

from typing import Any, Dict, Optional


class AdWatchException(Exception):
    """Base exception for all adwatch errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(AdWatchException):
    """Raised when a subscriber, query or ad does not exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class ExtractionError(AdWatchException):
    """Raised when an extractor cannot produce ads for a query URL.

    Carries enough structured context for a front end to render an
    actionable message.
    """

    kind = "extraction_error"

    def __init__(self, platform: str, message: str, url: Optional[str] = None):
        self.platform = platform
        self.url = url
        self.detail = message
        super().__init__(f"{platform}: {message}")

    def to_dict(self, query_id: Optional[Any] = None) -> Dict[str, Any]:
        data = {
            "platform": self.platform,
            "kind": self.kind,
            "message": self.detail,
        }
        if self.url:
            data["url"] = self.url
        if query_id is not None:
            data["query_id"] = str(query_id)
        return data


class TransientNetworkError(ExtractionError):
    """Timeout, refused connection or upstream throttling, after retries."""

    kind = "transient_network"


class MalformedResponseError(ExtractionError):
    """The expected data container is present but has the wrong shape."""

    kind = "malformed_response"


class ValidationError(AdWatchException):
    """Raised when a URL is not a supported search page."""

    def __init__(self, message: str, platform: Optional[str] = None):
        self.platform = platform
        super().__init__(message)


class PersistenceUnavailable(AdWatchException):
    """Raised when the storage gateway itself cannot be reached."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Persistence unavailable during {operation}: {message}")


class RecipientUnavailable(AdWatchException):
    """Raised when a notification recipient revoked access (blocked the bot)."""

    def __init__(self, chat_id: Any, message: str = "recipient revoked access"):
        self.chat_id = chat_id
        super().__init__(f"Recipient {chat_id}: {message}")


class NotificationError(AdWatchException):
    """Raised when a notification could not be delivered for other reasons."""


class QueryLimitExceeded(AdWatchException):
    """Raised when a subscriber already tracks the maximum number of queries."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Tracked query limit of {limit} reached")


class DuplicateQueryError(AdWatchException):
    """Raised when a subscriber registers the same URL twice."""

    def __init__(self, url: str):
        super().__init__(f"Query already tracked: {url}")
