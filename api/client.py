"""
Upstream Client
---------------
Credential-rotating HTTP client for the PandaScore REST API.

One logical GET tries each credential in priority order:
- 2xx returns immediately
- 429 or a failed network call moves on to the next credential
- any other status raises at once, remaining credentials untouched

No retry/backoff beyond that single pass and no caching here;
callers put a ResponseCache in front (see api.service).
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Mapping, Optional, Tuple
import os
import time

import httpx

from api.credentials import CredentialSet, load_credentials, tail
from cache.keys import TOKEN_PARAM, Params, param_pairs
from core.errors import (
    ConfigurationError, NetworkError, UpstreamError,
    UpstreamLayerError, UpstreamRateLimited,
)
from infra.config import Settings
from infra.logging import RequestContext, get_logger, get_request_id

PROXY_ENV_VARS = ("https_proxy", "HTTPS_PROXY", "http_proxy", "HTTP_PROXY")

DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": "application/json",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
}

BODY_SNIPPET_LIMIT = 500


class AttemptStatus(Enum):
    """Outcome of one request made with one credential."""
    SUCCESS = auto()
    RATE_LIMITED = auto()
    FAILED = auto()
    NETWORK_ERROR = auto()


@dataclass
class AttemptOutcome:
    """Result of a single credential attempt. Drives the rotation loop."""
    status: AttemptStatus
    response: Optional[httpx.Response] = None
    error: Optional[UpstreamLayerError] = None
    status_code: int = 0
    response_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == AttemptStatus.SUCCESS

    @property
    def rotates(self) -> bool:
        """Whether the next credential should be tried."""
        return self.status in (AttemptStatus.RATE_LIMITED, AttemptStatus.NETWORK_ERROR)


@dataclass
class UpstreamConfig:
    """Configuration for the upstream client."""
    name: str = "pandascore"
    base_url: str = "https://api.pandascore.co"
    timeout_seconds: float = 10.0
    min_credentials: int = 2  # Fail closed below this many tokens
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpstreamConfig":
        return cls(
            base_url=settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            min_credentials=settings.min_credentials,
        )


def resolve_proxy_url(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Forward proxy from the environment; lowercase names win."""
    environ = os.environ if environ is None else environ
    for name in PROXY_ENV_VARS:
        value = environ.get(name)
        if value:
            return value
    return None


def build_http_client(
    config: Optional[UpstreamConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> httpx.AsyncClient:
    """Network transport, routed through a proxy when one is configured."""
    config = config or UpstreamConfig()
    return httpx.AsyncClient(
        timeout=config.timeout_seconds,
        proxy=resolve_proxy_url(environ),
        trust_env=False,
        follow_redirects=True,
    )


class UpstreamClient:
    """
    Upstream API client with credential rotation.

    Rules:
    - Credentials injected as the last ``token`` query parameter
    - Only 429 and failed network calls rotate
    - Tokens never logged; only their last four characters
    """

    def __init__(
        self,
        credentials: CredentialSet,
        transport: Optional[httpx.AsyncClient] = None,
        config: Optional[UpstreamConfig] = None,
        owns_transport: Optional[bool] = None,
    ):
        self.config = config or UpstreamConfig()
        self.credentials = credentials
        self._owns_transport = transport is None if owns_transport is None else owns_transport
        self._transport = transport or build_http_client(self.config)
        self._logger = get_logger(f"api.{self.config.name}")

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.aclose()

    def resolve_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.config.base_url.rstrip('/')}/{url.lstrip('/')}"

    def _build_headers(self, headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
        merged = dict(DEFAULT_HEADERS)
        merged.update(self.config.headers)
        if headers:
            merged.update(headers)
        return merged

    def _check_credentials(self, url: str, method: str) -> None:
        required = max(1, self.config.min_credentials)
        if len(self.credentials) < required:
            self._logger.critical(
                "Missing PandaScore API keys in environment variables",
                extra={
                    "service": self.config.name,
                    "url": url,
                    "method": method,
                    "details": {"configured": len(self.credentials), "required": required},
                },
            )
            raise ConfigurationError(
                configured=len(self.credentials), required=required
            )

    async def fetch(
        self,
        url: str,
        params: Params = None,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        Perform one logical request, rotating credentials on rate limits.

        Args:
            url: Absolute endpoint URL, or a path under ``config.base_url``
            params: Query parameters (mapping or sequence of pairs)
            method: HTTP method
            headers: Extra headers; override the defaults
            timeout: Per-attempt timeout in seconds (default from config)

        Raises:
            ConfigurationError: too few credentials; no request is made
            UpstreamError: non-429 error status from any attempt
            UpstreamRateLimited / NetworkError: every credential failed
        """
        url = self.resolve_url(url)
        method = method.upper()
        self._check_credentials(url, method)

        base_pairs = [pair for pair in param_pairs(params) if pair[0] != TOKEN_PARAM]
        request_headers = self._build_headers(headers)
        last_error: Optional[UpstreamLayerError] = None

        with RequestContext(get_request_id()):
            for attempt, credential in enumerate(self.credentials, start=1):
                outcome = await self._attempt(
                    method=method,
                    url=url,
                    pairs=base_pairs,
                    headers=request_headers,
                    credential=credential,
                    attempt=attempt,
                    timeout=timeout,
                )

                if outcome.success:
                    return outcome.response
                if not outcome.rotates:
                    raise outcome.error
                last_error = outcome.error

        raise last_error

    async def _attempt(
        self,
        method: str,
        url: str,
        pairs: List[Tuple[str, str]],
        headers: Dict[str, str],
        credential: str,
        attempt: int,
        timeout: Optional[float],
    ) -> AttemptOutcome:
        """Issue one request with one credential. Never raises for HTTP or transport errors."""
        token_tail = tail(credential)
        query = pairs + [(TOKEN_PARAM, credential)]
        log_fields = {
            "service": self.config.name,
            "url": url,
            "method": method,
            "params": "&".join(f"{k}={v}" for k, v in pairs),
            "token_tail": token_tail,
            "attempt": attempt,
        }
        start = time.perf_counter()

        try:
            response = await self._transport.request(
                method,
                url,
                params=query,
                headers=headers,
                timeout=timeout if timeout is not None else self.config.timeout_seconds,
            )
        except httpx.RequestError as e:
            # Transport, decoding and redirect-loop failures all rotate
            elapsed = (time.perf_counter() - start) * 1000
            error = NetworkError(token_tail, e)
            error.__cause__ = e
            self._logger.warning(
                f"Request failed: {e!r}",
                extra={**log_fields, "duration_ms": round(elapsed, 1)},
            )
            return AttemptOutcome(
                status=AttemptStatus.NETWORK_ERROR,
                error=error,
                response_time_ms=elapsed,
            )

        elapsed = (time.perf_counter() - start) * 1000
        log_fields.update(status=response.status_code, duration_ms=round(elapsed, 1))

        if response.is_success:
            self._logger.debug(f"{method} {url} -> {response.status_code}", extra=log_fields)
            return AttemptOutcome(
                status=AttemptStatus.SUCCESS,
                response=response,
                status_code=response.status_code,
                response_time_ms=elapsed,
            )

        if response.status_code == 429:
            error = UpstreamRateLimited(token_tail)
            self._logger.warning(error.message, extra=log_fields)
            return AttemptOutcome(
                status=AttemptStatus.RATE_LIMITED,
                error=error,
                status_code=429,
                response_time_ms=elapsed,
            )

        body = response.text
        self._logger.error(
            f"API error: {response.status_code}",
            extra={**log_fields, "body_snippet": body[:BODY_SNIPPET_LIMIT]},
        )
        return AttemptOutcome(
            status=AttemptStatus.FAILED,
            error=UpstreamError(response.status_code, body, url=url),
            status_code=response.status_code,
            response_time_ms=elapsed,
        )


def create_pandascore_client(
    settings: Optional[Settings] = None,
    environ: Optional[Mapping[str, str]] = None,
    transport: Optional[httpx.AsyncClient] = None,
) -> UpstreamClient:
    """Create the PandaScore client from settings and environment."""
    settings = settings or Settings()
    config = UpstreamConfig.from_settings(settings)
    return UpstreamClient(
        credentials=load_credentials(environ),
        transport=transport or build_http_client(config, environ),
        config=config,
        owns_transport=transport is None,
    )
