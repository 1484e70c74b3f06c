"""Per-client token cache with single-flight refresh.

State per (organization_id, client_id):

  Empty ──get──▶ Fetching ──ok──▶ Valid ──expired / invalidated──▶ Fetching
                    │
                    └──error──▶ Empty (error propagates, next call retries)

Only one fetch per client runs at a time; callers that arrive during a fetch
await its result. Different clients never share state or block each other.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..config.models import ClientConfig
from ..errors import AuthError, DiscoveryError, TokenError
from .audit import AuditEvent, AuditOutcome, AuditSink, NullAuditSink, emit
from .discovery import DiscoveryClient, DiscoveryDocument, normalize_issuer
from .exchange import GRANT_REFRESH_TOKEN, TokenExchange
from .singleflight import SingleFlight
from .tokens import EMPTY_STATE, TokenResponse, TokenState

logger = logging.getLogger(__name__)


class _Slot:
    __slots__ = ("fingerprint", "state")

    def __init__(self, fingerprint: str) -> None:
        self.fingerprint = fingerprint
        self.state: TokenState = EMPTY_STATE


class AccessCoordinator:
    """The one entry point callers use to obtain access tokens."""

    def __init__(
        self,
        discovery: DiscoveryClient,
        exchange: TokenExchange,
        audit_sink: AuditSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._discovery = discovery
        self._exchange = exchange
        self._audit = audit_sink or NullAuditSink()
        self._clock = clock
        self._slots: dict[tuple[str | None, str], _Slot] = {}
        self._flights: SingleFlight[str] = SingleFlight()

    async def get_access_token(
        self,
        config: ClientConfig,
        *,
        timeout: float | None = None,
        principal_id: str | None = None,
    ) -> str:
        """Return a currently valid access token for ``config``.

        Args:
            config: Resolved client configuration.
            timeout: Seconds this caller is willing to wait. On expiry only
                this caller gives up; a shared fetch keeps running.
            principal_id: Who is asking, recorded on audit events.

        Raises:
            DiscoveryError, SigningError, TokenError: annotated with the
                config's organization and client id. All are AuthError.
            asyncio.TimeoutError: ``timeout`` elapsed.
        """
        slot = self._slot_for(config)
        state = slot.state
        if state.is_valid(self._clock()):
            logger.debug("Cached token hit for client_id=%s", config.client_id)
            return state.access_token  # type: ignore[return-value]

        return await self._flights.do(
            (config.cache_key, slot.fingerprint),
            lambda: self._fetch(config, slot, principal_id),
            timeout=timeout,
        )

    def invalidate(self, config: ClientConfig, access_token: str | None = None) -> None:
        """Drop the cached token, e.g. after a 401 from the resource server.

        When ``access_token`` is given, the cache is cleared only if it still
        holds that token, so a stale 401 cannot evict a newer token.
        """
        slot = self._slots.get(config.cache_key)
        if slot is None:
            return
        if access_token is not None and slot.state.access_token != access_token:
            return
        logger.info("Invalidating cached token for client_id=%s", config.client_id)
        slot.state = EMPTY_STATE

    def token_state(self, config: ClientConfig) -> TokenState | None:
        slot = self._slots.get(config.cache_key)
        if slot is None or slot.fingerprint != config.fingerprint():
            return None
        return slot.state

    def clear(self) -> None:
        self._slots.clear()

    def _slot_for(self, config: ClientConfig) -> _Slot:
        fingerprint = config.fingerprint()
        slot = self._slots.get(config.cache_key)
        if slot is None or slot.fingerprint != fingerprint:
            if slot is not None:
                logger.info(
                    "Configuration changed for client_id=%s; discarding cached token",
                    config.client_id,
                )
            slot = _Slot(fingerprint)
            self._slots[config.cache_key] = slot
        return slot

    async def _fetch(self, config: ClientConfig, slot: _Slot, principal_id: str | None) -> str:
        refresh_token = slot.state.refresh_token
        self._emit(config, AuditOutcome.ATTEMPT, principal_id)
        try:
            discovery = await self._resolve_endpoint(config)
            response = await self._request(config, discovery, refresh_token)
            if response.expires_at <= self._clock():
                raise TokenError(
                    f"Token lifetime of {response.expires_in}s does not outlast the clock skew",
                    status_code=None,
                    error="invalid_response",
                    retryable=False,
                )
        except AuthError as exc:
            slot.state = EMPTY_STATE
            exc.annotate(organization_id=config.organization_id, client_id=config.client_id)
            self._emit(config, AuditOutcome.FAILURE, principal_id, detail=_describe(exc))
            logger.warning("Token acquisition failed: %s", exc)
            raise
        except Exception as exc:
            slot.state = EMPTY_STATE
            self._emit(config, AuditOutcome.FAILURE, principal_id, detail=type(exc).__name__)
            raise

        slot.state = TokenState.from_response(response)
        self._emit(config, AuditOutcome.SUCCESS, principal_id)
        return response.access_token

    async def _resolve_endpoint(self, config: ClientConfig) -> DiscoveryDocument:
        # Order: explicit endpoint, issuer discovery, then FHIR-base discovery.
        if config.token_endpoint:
            return DiscoveryDocument(token_endpoint=config.token_endpoint)
        try:
            return await self._discovery.discover(config.issuer)
        except DiscoveryError as issuer_error:
            if normalize_issuer(config.fhir_base_url) == normalize_issuer(config.issuer):
                raise
            logger.warning(
                "Discovery via issuer %s failed (%s); trying FHIR base %s",
                config.issuer,
                issuer_error,
                config.fhir_base_url,
            )
            try:
                return await self._discovery.discover(config.fhir_base_url)
            except DiscoveryError:
                raise issuer_error

    async def _request(
        self,
        config: ClientConfig,
        discovery: DiscoveryDocument,
        refresh_token: str | None,
    ) -> TokenResponse:
        if refresh_token:
            try:
                return await self._exchange.request_token(
                    config,
                    discovery,
                    GRANT_REFRESH_TOKEN,
                    {"refresh_token": refresh_token},
                )
            except TokenError as exc:
                logger.warning(
                    "Refresh grant rejected for client_id=%s (%s); using client_credentials",
                    config.client_id,
                    exc.error or exc.status_code,
                )
        return await self._exchange.request_token(config, discovery)

    def _emit(
        self,
        config: ClientConfig,
        outcome: AuditOutcome,
        principal_id: str | None,
        detail: str | None = None,
    ) -> None:
        emit(
            self._audit,
            AuditEvent(
                outcome=outcome,
                organization_id=config.organization_id,
                client_id=config.client_id,
                principal_id=principal_id,
                detail=detail,
            ),
        )


def _describe(exc: AuthError) -> str:
    if isinstance(exc, TokenError) and exc.error:
        return f"{type(exc).__name__}:{exc.error}"
    return type(exc).__name__
