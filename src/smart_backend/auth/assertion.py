"""RFC 7523 client assertions for the SMART backend-services flow.

The assertion replaces a client secret:
  1. Build a JWT whose iss and sub are the client_id and whose aud is the
     token endpoint.
  2. Sign it with the client's registered private key.
  3. Send it as ``client_assertion`` on the token request.

A new assertion is built for every token request and is never reused.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from typing import Any

import jwt

from ..config.keys import load_signing_key
from ..config.models import ClientConfig
from ..errors import ConfigError, SigningError

ASSERTION_LIFETIME_SECONDS = 300  # 5 minutes, the SMART maximum
CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class AssertionSigner:
    """Build and sign client assertions."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    def build_claims(self, config: ClientConfig, audience: str) -> dict[str, Any]:
        now = int(self._clock())
        return {
            "iss": config.client_id,
            "sub": config.client_id,
            "aud": audience,
            "jti": secrets.token_hex(16),  # 128 random bits
            "iat": now,
            "exp": now + ASSERTION_LIFETIME_SECONDS,
        }

    def sign(self, config: ClientConfig, audience: str) -> str:
        """Return a compact-serialized JWT for ``audience`` (the token endpoint).

        Raises:
            SigningError: the key or algorithm cannot produce a signature.
        """
        try:
            key = load_signing_key(
                config.private_key.get_secret_value(), config.signing_algorithm
            )
        except ConfigError as exc:
            raise SigningError(f"Cannot load signing key: {exc}") from exc

        headers: dict[str, str] = {"typ": "JWT"}
        if config.key_id:
            headers["kid"] = config.key_id

        try:
            return jwt.encode(
                self.build_claims(config, audience),
                key,
                algorithm=config.signing_algorithm,
                headers=headers,
            )
        except (jwt.PyJWTError, ValueError, TypeError, NotImplementedError) as exc:
            raise SigningError(
                f"Failed to sign client assertion with {config.signing_algorithm}"
            ) from exc
