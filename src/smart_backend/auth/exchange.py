"""OAuth2 token requests against the authorization server's token endpoint."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from ..config.models import ClientConfig
from ..errors import TokenError
from .assertion import CLIENT_ASSERTION_TYPE, AssertionSigner
from .discovery import DiscoveryDocument
from .tokens import TokenResponse

logger = logging.getLogger(__name__)

GRANT_CLIENT_CREDENTIALS = "client_credentials"
GRANT_REFRESH_TOKEN = "refresh_token"
SUPPORTED_GRANTS = (GRANT_CLIENT_CREDENTIALS, GRANT_REFRESH_TOKEN)
RESERVED_FORM_FIELDS = frozenset(
    {"grant_type", "scope", "refresh_token", "client_assertion", "client_assertion_type"}
)

DEFAULT_CLOCK_SKEW_SECONDS = 30


class TokenExchange:
    """Perform client_credentials and refresh_token grants.

    Errors are never retried here. Whether to try again is the caller's call,
    guided by ``TokenError.retryable``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        signer: AssertionSigner | None = None,
        skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
        timeout: float | None = None,
    ) -> None:
        self._http = http_client
        self._timeout = httpx.USE_CLIENT_DEFAULT if timeout is None else timeout
        self._signer = signer or AssertionSigner(clock=clock)
        self._skew = skew_seconds
        self._clock = clock

    async def request_token(
        self,
        config: ClientConfig,
        discovery: DiscoveryDocument,
        grant_type: str = GRANT_CLIENT_CREDENTIALS,
        extra: Mapping[str, str] | None = None,
    ) -> TokenResponse:
        """POST a token request and parse the result.

        Args:
            config: The resolved client configuration.
            discovery: Source of the token endpoint.
            grant_type: ``client_credentials`` or ``refresh_token``.
            extra: Additional form fields; ``refresh_token`` is required for
                the refresh grant. Other keys in RESERVED_FORM_FIELDS are ignored.

        Returns:
            TokenResponse with ``expires_at`` set to completion time plus
            ``expires_in`` minus the clock skew.

        Raises:
            SigningError: the assertion could not be signed.
            TokenError: transport failure, non-2xx status, or a malformed body.
        """
        form = self._build_form(config, discovery.token_endpoint, grant_type, extra or {})

        try:
            response = await self._http.post(
                discovery.token_endpoint,
                data=form,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise TokenError(
                f"Token request to {discovery.token_endpoint} failed: {exc}",
                error="network_error",
            ) from exc
        completed_at = self._clock()

        if not response.is_success:
            raise _error_from_response(response)
        return self._parse_success(response, config.scope, completed_at)

    def _build_form(
        self,
        config: ClientConfig,
        token_endpoint: str,
        grant_type: str,
        extra: Mapping[str, str],
    ) -> dict[str, str]:
        if grant_type not in SUPPORTED_GRANTS:
            raise TokenError(
                f"Unsupported grant type {grant_type!r}",
                error="unsupported_grant_type",
                retryable=False,
            )

        # Reserved fields are set below and never taken from extra.
        form = {k: v for k, v in extra.items() if k not in RESERVED_FORM_FIELDS}
        form["grant_type"] = grant_type
        if grant_type == GRANT_CLIENT_CREDENTIALS:
            form["scope"] = config.scope
        else:
            refresh_token = extra.get("refresh_token")
            if not refresh_token:
                raise TokenError(
                    "refresh_token grant requires a refresh token",
                    error="invalid_request",
                    retryable=False,
                )
            form["refresh_token"] = refresh_token

        # Backend services require a fresh assertion on every token request.
        form["client_assertion_type"] = CLIENT_ASSERTION_TYPE
        form["client_assertion"] = self._signer.sign(config, token_endpoint)
        return form

    def _parse_success(
        self,
        response: httpx.Response,
        requested_scope: str,
        completed_at: float,
    ) -> TokenResponse:
        try:
            body = response.json()
        except ValueError as exc:
            raise _invalid_response(response, "body is not JSON") from exc
        if not isinstance(body, dict):
            raise _invalid_response(response, "body is not a JSON object")

        access_token = body.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise _invalid_response(response, "missing access_token")

        expires_in = _as_positive_int(body.get("expires_in"))
        if expires_in is None:
            raise _invalid_response(response, "missing or invalid expires_in")

        refresh_token = body.get("refresh_token")
        scope = body.get("scope")
        logger.info("Token issued (expires_in=%ss)", expires_in)
        return TokenResponse(
            access_token=access_token,
            token_type=str(body.get("token_type") or "Bearer"),
            expires_in=expires_in,
            refresh_token=refresh_token if isinstance(refresh_token, str) and refresh_token else None,
            scope=scope if isinstance(scope, str) and scope else requested_scope,
            issued_at=completed_at,
            expires_at=completed_at + expires_in - self._skew,
        )


def _as_positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


def _invalid_response(response: httpx.Response, reason: str) -> TokenError:
    return TokenError(
        f"Token endpoint returned an unusable response: {reason}",
        status_code=response.status_code,
        error="invalid_response",
        error_description=reason,
        retryable=False,
    )


def _error_from_response(response: httpx.Response) -> TokenError:
    error: str | None = None
    description: str | None = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if isinstance(body.get("error"), str):
            error = body["error"]
        if isinstance(body.get("error_description"), str):
            description = body["error_description"]

    message = f"Token endpoint returned HTTP {response.status_code}"
    if error:
        message += f" ({error})"
    logger.warning("%s: %s", message, description or "no description")
    return TokenError(
        message,
        status_code=response.status_code,
        error=error,
        error_description=description,
    )
