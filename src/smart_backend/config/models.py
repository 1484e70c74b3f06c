"""Pydantic models for SMART backend-services client configuration."""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, ConfigDict, Field, SecretStr

DEFAULT_SIGNING_ALGORITHM = "RS384"


class ClientConfig(BaseModel):
    """Immutable per-organization client configuration.

    Build instances with :func:`smart_backend.config.resolve`, which validates
    the URLs and the private key before returning. Constructing the model
    directly skips those checks.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., description="OAuth2 client_id; iss and sub of the assertion")
    issuer: str = Field(..., description="Authorization server identity and discovery base URL")
    scope: str = Field(..., description="Space-delimited OAuth2 scopes")
    private_key: SecretStr = Field(..., description="PEM or JWK private key (never logged)")
    fhir_base_url: str = Field(..., description="FHIR REST API base URL")
    key_id: str | None = Field(default=None, description="Optional kid header")
    signing_algorithm: str = Field(default=DEFAULT_SIGNING_ALGORITHM)
    organization_id: str | None = Field(default=None, description="Owning tenant")
    token_endpoint: str | None = Field(
        default=None, description="Explicit token endpoint; bypasses discovery when set"
    )

    @property
    def cache_key(self) -> tuple[str | None, str]:
        return (self.organization_id, self.client_id)

    def fingerprint(self) -> str:
        """Digest of every field, including the secret key material."""
        payload = self.model_dump()
        payload["private_key"] = self.private_key.get_secret_value()
        canonical = "\x1f".join(f"{k}={payload[k]}" for k in sorted(payload))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
