"""Access-token use case: stored record in, HTTP-shaped result out.

This is the glue a route handler calls. It never leaks OAuth2 error bodies to
the end user. The generic message goes out; the detail goes to the log.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..auth.client import SmartClient
from ..errors import AuthError, ConfigError
from .records import KeyDecryptor, SmartClientRecord, load_client_config

logger = logging.getLogger(__name__)

AUTHORIZATION_FAILED = "authorization failed"
INTERNAL_ERROR = "internal error"
AUTHORIZATION_UNAVAILABLE = "authorization unavailable"


class AccessTokenUseCase:
    """Return ``(status, body)`` for an access-token request."""

    def __init__(self, smart_client: SmartClient, decryptor: KeyDecryptor) -> None:
        self._smart = smart_client
        self._decryptor = decryptor

    async def handle(
        self,
        record: SmartClientRecord,
        *,
        principal_id: str | None = None,
        timeout: float | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """Resolve ``record`` and fetch a token.

        Returns:
            (200, {"accessToken": ...}) on success,
            (401, {"error": "authorization failed"}) for any AuthError,
            (503, {"error": "authorization unavailable"}) when ``timeout`` elapses,
            (500, {"error": "internal error"}) for configuration or key decryption failures.
        """
        try:
            config = await load_client_config(record, self._decryptor)
        except ConfigError as exc:
            logger.error(
                "SMART client for organization %s is misconfigured: %s",
                record.organization_id,
                exc,
            )
            return 500, {"error": INTERNAL_ERROR}

        try:
            token = await self._smart.get_access_token(
                config, timeout=timeout, principal_id=principal_id
            )
        except AuthError as exc:
            logger.warning(
                "Access token request failed (retryable=%s): %s", exc.retryable, exc
            )
            return 401, {"error": AUTHORIZATION_FAILED, "retryable": exc.retryable}
        except asyncio.TimeoutError:
            logger.warning(
                "Access token request for organization %s timed out after %ss",
                record.organization_id,
                timeout,
            )
            return 503, {"error": AUTHORIZATION_UNAVAILABLE, "retryable": True}
        return 200, {"accessToken": token}
