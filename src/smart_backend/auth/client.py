"""SmartClient: one explicitly constructed service object per process.

Wires a shared ``httpx.AsyncClient`` into discovery, token exchange and the
access coordinator, and owns the lifecycle of anything it created.

    async with SmartClient() as smart:
        token = await smart.get_access_token(config)
"""

from __future__ import annotations

import time
from collections.abc import Callable

import httpx

from ..config.models import ClientConfig
from ..config.settings import SmartClientSettings
from .assertion import AssertionSigner
from .audit import AuditSink
from .coordinator import AccessCoordinator
from .discovery import DiscoveryClient
from .exchange import TokenExchange
from .tokens import TokenState


class SmartClient:
    """Facade over the SMART backend-services token machinery.

    ``settings.http_timeout`` is applied to every discovery and token request,
    including over an injected ``http_client``. Other requests sent through an
    injected client keep that client's own timeout.
    """

    def __init__(
        self,
        settings: SmartClientSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        audit_sink: AuditSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or SmartClientSettings()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.settings.http_timeout)

        self.discovery = DiscoveryClient(
            self._http,
            ttl_seconds=self.settings.discovery_ttl_seconds,
            timeout=self.settings.http_timeout,
        )
        self.signer = AssertionSigner(clock=clock)
        self.exchange = TokenExchange(
            self._http,
            signer=self.signer,
            skew_seconds=self.settings.clock_skew_seconds,
            clock=clock,
            timeout=self.settings.http_timeout,
        )
        self.coordinator = AccessCoordinator(
            self.discovery,
            self.exchange,
            audit_sink=audit_sink,
            clock=clock,
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http

    async def get_access_token(
        self,
        config: ClientConfig,
        *,
        timeout: float | None = None,
        principal_id: str | None = None,
    ) -> str:
        return await self.coordinator.get_access_token(
            config, timeout=timeout, principal_id=principal_id
        )

    def invalidate(self, config: ClientConfig, access_token: str | None = None) -> None:
        self.coordinator.invalidate(config, access_token)

    def token_state(self, config: ClientConfig) -> TokenState | None:
        return self.coordinator.token_state(config)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "SmartClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
