"""SMART configuration discovery with a per-issuer cache.

Looks up ``{issuer}/.well-known/smart-configuration`` and falls back to
``{issuer}/.well-known/openid-configuration`` when the SMART document is 404.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from urllib.parse import urlsplit, urlunsplit

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import DiscoveryError
from .singleflight import SingleFlight

logger = logging.getLogger(__name__)

SMART_CONFIGURATION_PATH = "/.well-known/smart-configuration"
OPENID_CONFIGURATION_PATH = "/.well-known/openid-configuration"


class DiscoveryDocument(BaseModel):
    """The subset of a SMART/OIDC discovery document this client relies on."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token_endpoint: str = Field(..., min_length=1)
    issuer: str | None = None
    authorization_endpoint: str | None = None
    jwks_uri: str | None = None
    scopes_supported: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(default_factory=list)
    token_endpoint_auth_methods_supported: list[str] = Field(default_factory=list)
    token_endpoint_auth_signing_alg_values_supported: list[str] = Field(default_factory=list)

    @field_validator("token_endpoint")
    @classmethod
    def token_endpoint_is_absolute(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
            raise ValueError(f"token_endpoint must be an absolute http(s) URL, got {value!r}")
        return value


def normalize_issuer(issuer: str) -> str:
    """Canonical cache key: lower-case scheme and host, path kept, no trailing slash."""
    parts = urlsplit(issuer.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


class DiscoveryClient:
    """Fetch and cache discovery documents keyed by normalized issuer."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        timeout: float | None = None,
    ) -> None:
        self._http = http_client
        self._timeout = httpx.USE_CLIENT_DEFAULT if timeout is None else timeout
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: dict[str, tuple[DiscoveryDocument, float]] = {}
        self._flights: SingleFlight[DiscoveryDocument] = SingleFlight()

    async def discover(self, issuer: str) -> DiscoveryDocument:
        """Return the discovery document for ``issuer``, from cache when possible.

        Raises:
            DiscoveryError: network failure, non-2xx status, a body that is not
                JSON, or a document without ``token_endpoint``. Not retried.
        """
        key = normalize_issuer(issuer)
        cached = self._cached(key)
        if cached is not None:
            return cached
        return await self._flights.do(key, lambda: self._fetch(key))

    def invalidate(self, issuer: str) -> None:
        self._cache.pop(normalize_issuer(issuer), None)

    def _cached(self, key: str) -> DiscoveryDocument | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        document, stored_at = entry
        if self._ttl is not None and self._clock() - stored_at >= self._ttl:
            del self._cache[key]
            return None
        return document

    async def _fetch(self, key: str) -> DiscoveryDocument:
        url = key + SMART_CONFIGURATION_PATH
        response = await self._get(url)
        if response.status_code == 404:
            logger.info("No SMART configuration at %s, trying OpenID configuration", url)
            url = key + OPENID_CONFIGURATION_PATH
            response = await self._get(url)

        if not response.is_success:
            raise DiscoveryError(
                f"Discovery request returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise DiscoveryError(
                "Discovery document is not valid JSON",
                url=url,
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise DiscoveryError(
                "Discovery document is not a JSON object",
                url=url,
                status_code=response.status_code,
            )

        try:
            document = DiscoveryDocument.model_validate(payload)
        except ValidationError as exc:
            raise DiscoveryError(
                "Discovery document has no usable token_endpoint",
                url=url,
                status_code=response.status_code,
            ) from exc

        self._cache[key] = (document, self._clock())
        logger.info("Discovered token endpoint %s for %s", document.token_endpoint, key)
        return document

    async def _get(self, url: str) -> httpx.Response:
        try:
            return await self._http.get(
                url, headers={"Accept": "application/json"}, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise DiscoveryError(f"Discovery request failed: {exc}", url=url) from exc
