"""Persisted SMART client records and their conversion into ClientConfig.

The record lives in an external store with its private key encrypted. The
key-management service decrypts it; this module only asks for the plaintext.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..config.models import ClientConfig
from ..config.resolver import resolve
from ..errors import KeyDecryptionError


class KeyDecryptor(Protocol):
    async def decrypt(self, ciphertext: str) -> str: ...


class SmartClientRecord(BaseModel):
    """One organization's stored SMART backend-services registration."""

    model_config = ConfigDict(populate_by_name=True)

    organization_id: str = Field(..., alias="organizationId")
    client_id: str = Field(..., alias="clientId")
    iss: str
    scope: str
    private_key: str = Field(..., alias="privateKey", description="Ciphertext from the KMS")
    fhir_base_url: str | None = Field(default=None, alias="fhirBaseUrl")
    kid: str | None = None
    signing_algorithm: str | None = Field(default=None, alias="signingAlgorithm")
    token_endpoint: str | None = Field(default=None, alias="tokenEndpoint")


async def load_client_config(record: SmartClientRecord, decryptor: KeyDecryptor) -> ClientConfig:
    """Decrypt the record's key and resolve it into a validated ClientConfig.

    Raises:
        KeyDecryptionError: the decryptor failed.
        ConfigError: the decrypted record does not form a valid configuration.
    """
    try:
        plaintext = await decryptor.decrypt(record.private_key)
    except Exception as exc:
        raise KeyDecryptionError(
            f"Cannot decrypt private key for organization {record.organization_id}"
        ) from exc
    return resolve(
        {
            "organization_id": record.organization_id,
            "client_id": record.client_id,
            "issuer": record.iss,
            "scope": record.scope,
            "private_key": plaintext,
            "fhir_base_url": record.fhir_base_url,
            "key_id": record.kid,
            "signing_algorithm": record.signing_algorithm,
            "token_endpoint": record.token_endpoint,
        }
    )
