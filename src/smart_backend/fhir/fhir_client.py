"""Async FHIR R4 REST client authenticated with SMART backend-services tokens."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import httpx

from ..config.models import ClientConfig

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class TokenProvider(Protocol):
    async def get_access_token(self, config: ClientConfig) -> str: ...

    def invalidate(self, config: ClientConfig, access_token: str | None = None) -> None: ...


class FHIRClient:
    """Minimal FHIR R4 client for one organization's FHIR server.

    Every request carries a Bearer token from the token provider. A 401 means
    the server no longer accepts the cached token (revocation, clock skew), so
    the token is invalidated and the request is sent once more with a fresh one.
    """

    def __init__(
        self,
        config: ClientConfig,
        tokens: TokenProvider,
        http_client: httpx.AsyncClient,
    ) -> None:
        self.config = config
        self.base_url = config.fhir_base_url.rstrip("/")
        self._tokens = tokens
        self._http = http_client

    async def read(self, resource_type: str, resource_id: str) -> httpx.Response:
        """GET a FHIR resource by type and logical ID."""
        return await self._send("GET", f"{resource_type}/{resource_id}")

    async def vread(self, resource_type: str, resource_id: str, version_id: str) -> httpx.Response:
        return await self._send("GET", f"{resource_type}/{resource_id}/_history/{version_id}")

    async def history(self, resource_type: str, resource_id: str) -> httpx.Response:
        return await self._send("GET", f"{resource_type}/{resource_id}/_history")

    async def search(
        self,
        resource_type: str,
        params: Mapping[str, str | list[str]] | None = None,
    ) -> httpx.Response:
        """Search a resource type; list values repeat the parameter."""
        return await self._send("GET", resource_type, params=params)

    async def create(self, resource_type: str, resource: dict[str, Any]) -> httpx.Response:
        """POST a new resource and return the response (201 Created on success)."""
        return await self._send("POST", resource_type, json=resource)

    async def update(
        self,
        resource_type: str,
        resource_id: str,
        resource: dict[str, Any],
    ) -> httpx.Response:
        return await self._send("PUT", f"{resource_type}/{resource_id}", json=resource)

    async def delete(self, resource_type: str, resource_id: str) -> httpx.Response:
        return await self._send("DELETE", f"{resource_type}/{resource_id}")

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/{path}"
        token = await self._tokens.get_access_token(self.config)
        response = await self._http.request(
            method, url, params=params, json=json, headers=self._headers(token, json is not None)
        )
        if response.status_code != 401:
            return response

        logger.info("FHIR server rejected token for %s %s; refreshing once", method, url)
        self._tokens.invalidate(self.config, token)
        token = await self._tokens.get_access_token(self.config)
        return await self._http.request(
            method, url, params=params, json=json, headers=self._headers(token, json is not None)
        )

    @staticmethod
    def _headers(token: str, has_body: bool) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {token}", "Accept": FHIR_JSON}
        if has_body:
            headers["Content-Type"] = FHIR_JSON
        return headers
