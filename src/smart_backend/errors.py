"""Exception hierarchy for the SMART backend-services client.

  SmartClientError
    ConfigError (also a ValueError)   bad static configuration, never retried
      MissingFieldError
      InvalidFieldError
      InvalidKeyError
      KeyDecryptionError
    AuthError                         raised out of the access coordinator
      DiscoveryError
      SigningError
      TokenError

Every AuthError knows whether retrying could help (``retryable``). The
coordinator stamps the organization and client it was working for onto the
error before re-raising it, so callers never have to guess which tenant failed.
"""

from __future__ import annotations


class SmartClientError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(SmartClientError, ValueError):
    """Raised when a client configuration is invalid."""


class MissingFieldError(ConfigError):
    """A required configuration field is absent or blank."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}")
        self.field = field


class InvalidFieldError(ConfigError):
    """A configuration field is present but malformed."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid {field}: {reason}")
        self.field = field
        self.reason = reason


class InvalidKeyError(ConfigError):
    """The private key does not parse, or does not match the signing algorithm."""


class KeyDecryptionError(ConfigError):
    """The stored private key could not be decrypted."""


class AuthError(SmartClientError):
    """Umbrella for failures while acquiring an access token."""

    retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable
        self.organization_id: str | None = None
        self.client_id: str | None = None

    def annotate(self, *, organization_id: str | None, client_id: str | None) -> AuthError:
        """Attach the identity of the config that failed. Returns self."""
        self.organization_id = organization_id
        self.client_id = client_id
        return self

    def __str__(self) -> str:
        message = super().__str__()
        if self.client_id is None:
            return message
        org = self.organization_id or "-"
        return f"{message} (organization={org}, client_id={self.client_id})"


class DiscoveryError(AuthError):
    """The authorization server's discovery document could not be obtained."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, retryable=status_code is None or status_code >= 500)
        self.url = url
        self.status_code = status_code


class SigningError(AuthError):
    """The client assertion could not be signed. Always a configuration defect."""

    retryable = False


class TokenError(AuthError):
    """The token endpoint refused the request or returned an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        if retryable is None:
            retryable = _is_retryable_status(status_code)
        super().__init__(message, retryable=retryable)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


def _is_retryable_status(status_code: int | None) -> bool:
    # None means the request never got an HTTP answer (network failure).
    if status_code is None:
        return True
    return status_code >= 500 or status_code == 429
