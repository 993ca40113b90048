# API module - Upstream provider integration
# One credential-rotating client, caching kept outside the client

from .credentials import CredentialSet, load_credentials
from .client import (
    UpstreamClient, UpstreamConfig, AttemptStatus, AttemptOutcome,
    build_http_client, resolve_proxy_url, create_pandascore_client,
)
from .service import UpstreamService, CachePolicy, CRITICAL_ENDPOINTS

__all__ = [
    "CredentialSet",
    "load_credentials",
    "UpstreamClient",
    "UpstreamConfig",
    "AttemptStatus",
    "AttemptOutcome",
    "build_http_client",
    "resolve_proxy_url",
    "create_pandascore_client",
    "UpstreamService",
    "CachePolicy",
    "CRITICAL_ENDPOINTS",
]
