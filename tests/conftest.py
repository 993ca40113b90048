"""
EMob Test Configuration
-----------------------
Shared fixtures and configuration for all tests.

Tests are hermetic: no real network, no credentials or proxies leaking in
from the developer's environment.
"""

import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from api.client import UpstreamClient, UpstreamConfig
from api.credentials import CredentialSet


# =============================================================================
# Test Isolation
# =============================================================================

ISOLATED_ENV_VARS = (
    "PANDA_SCORE_TOKEN", "PANDA_SCORE_TOKEN_FALLBACK",
    "https_proxy", "HTTPS_PROXY", "http_proxy", "HTTP_PROXY",
    "EMOB_CACHE_TTL_SECONDS", "EMOB_CACHE_MAX_SIZE",
    "EMOB_UPSTREAM_MIN_CREDENTIALS", "EMOB_UPSTREAM_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Strip credentials, proxies and config overrides from the environment."""
    for name in ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class RecordingHandler:
    """Mock transport handler that records every request it answers."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self._responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def tokens(self) -> List[str]:
        return [r.url.params.get("token") for r in self.requests]


@pytest.fixture
def make_client():
    """Build an UpstreamClient whose transport is an httpx.MockTransport."""
    def _make(responder, credentials=("tok1", "tok2"), **config_kwargs):
        handler = RecordingHandler(responder)
        transport = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = UpstreamClient(
            credentials=CredentialSet(credentials),
            transport=transport,
            config=UpstreamConfig(**config_kwargs),
            owns_transport=True,
        )
        return client, handler
    return _make
