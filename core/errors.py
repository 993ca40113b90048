"""
Error Handling Module
---------------------
Typed errors for the upstream resilience layer.

Only rate limiting and transport failures rotate credentials.
Every terminal failure reaches the caller as one of these exceptions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List, Optional
import logging


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    CONFIGURATION = auto()  # Credentials or settings missing
    RATE_LIMITED = auto()   # Every credential got a 429
    UPSTREAM = auto()       # Non-429 error status from the provider
    NETWORK = auto()        # DNS/TLS/connection/timeout failure


class UpstreamLayerError(Exception):
    """Base class for all errors raised by the resilience layer."""

    category: ErrorCategory = ErrorCategory.UPSTREAM
    recoverable: bool = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.category.name}: {self.message})"


class ConfigurationError(UpstreamLayerError):
    """Required credentials are absent. Fatal for the calling request."""

    category = ErrorCategory.CONFIGURATION
    recoverable = False

    def __init__(self, message: str = "missing upstream credentials", **details: Any):
        super().__init__(message, details)


class UpstreamError(UpstreamLayerError):
    """A non-429, non-2xx response. Short-circuits credential rotation."""

    category = ErrorCategory.UPSTREAM
    recoverable = False

    def __init__(self, status_code: int, body: str = "", url: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"API error: {status_code} - {body}",
            {"status": status_code, "url": url},
        )


class ResponseDecodeError(UpstreamError):
    """A 2xx response whose body is not JSON (empty 204, HTML maintenance page)."""

    def __init__(self, status_code: int, body: str = "", url: str = ""):
        super().__init__(status_code, body, url=url)
        self.message = f"Invalid JSON in {status_code} response - {body[:200]}"
        self.args = (self.message,)


class UpstreamRateLimited(UpstreamLayerError):
    """The credential ending in ``token_tail`` was throttled (HTTP 429)."""

    category = ErrorCategory.RATE_LIMITED

    def __init__(self, token_tail: str):
        self.token_tail = token_tail
        self.status_code = 429
        super().__init__(
            f"Rate limit hit with key ending in {token_tail}",
            {"token_tail": token_tail, "status": 429},
        )


class NetworkError(UpstreamLayerError):
    """Transport-level failure while using the credential ending in ``token_tail``."""

    category = ErrorCategory.NETWORK

    def __init__(self, token_tail: str, cause: BaseException):
        self.token_tail = token_tail
        self.cause = cause
        super().__init__(
            f"Request failed: {cause}",
            {"token_tail": token_tail, "cause": type(cause).__name__},
        )


@dataclass
class ErrorRecord:
    """Entry kept in the handler history."""
    category: ErrorCategory
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class ErrorHandler:
    """
    Central error handler with logging and bounded history.

    Route handlers use it to degrade gracefully: log the failure,
    then answer with an empty result instead of a 500.
    """

    LEVELS: Dict[ErrorCategory, int] = {
        ErrorCategory.CONFIGURATION: logging.CRITICAL,
        ErrorCategory.RATE_LIMITED: logging.WARNING,
        ErrorCategory.UPSTREAM: logging.ERROR,
        ErrorCategory.NETWORK: logging.ERROR,
    }

    MESSAGES: Dict[ErrorCategory, str] = {
        ErrorCategory.CONFIGURATION: "The data provider is not configured.",
        ErrorCategory.RATE_LIMITED: "The data provider is busy. Please try again shortly.",
        ErrorCategory.UPSTREAM: "The data provider returned an error.",
        ErrorCategory.NETWORK: "Could not reach the data provider.",
    }

    def __init__(self, max_history: int = 100):
        self._logger = logging.getLogger("emob.errors")
        self._history: List[ErrorRecord] = []
        self._max_history = max_history

    def handle(self, error: UpstreamLayerError) -> str:
        """Log an error, remember it, and return a user-facing message."""
        record = ErrorRecord(
            category=error.category,
            message=error.message,
            details=dict(error.details),
        )
        self._logger.log(
            self.LEVELS.get(error.category, logging.ERROR),
            f"{error.category.name}: {error.message}",
            extra={"details": record.details},
        )

        self._history.append(record)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        return self.MESSAGES.get(error.category, "An error occurred.")

    @property
    def history(self) -> List[ErrorRecord]:
        return list(self._history)

    def get_error_stats(self) -> Dict[str, int]:
        """Count handled errors per category name."""
        stats: Dict[str, int] = {}
        for record in self._history:
            key = record.category.name
            stats[key] = stats.get(key, 0) + 1
        return stats

    def clear_history(self) -> None:
        self._history.clear()
