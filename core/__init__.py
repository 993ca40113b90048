# Core module - Error taxonomy shared by the client, cache glue and callers

from .errors import (
    ErrorCategory, ErrorHandler, ErrorRecord, UpstreamLayerError,
    ConfigurationError, UpstreamError, ResponseDecodeError,
    UpstreamRateLimited, NetworkError,
)

__all__ = [
    "ErrorCategory", "ErrorHandler", "ErrorRecord", "UpstreamLayerError",
    "ConfigurationError", "UpstreamError", "ResponseDecodeError",
    "UpstreamRateLimited", "NetworkError",
]
