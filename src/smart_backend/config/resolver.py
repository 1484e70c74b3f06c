"""Validate and normalize raw client configuration into a ClientConfig."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

from pydantic import SecretStr

from ..errors import InvalidFieldError, MissingFieldError
from .keys import load_signing_key
from .models import DEFAULT_SIGNING_ALGORITHM, ClientConfig

# Order matters: the first missing field in this order is reported.
REQUIRED_FIELDS = ("client_id", "issuer", "scope", "private_key", "fhir_base_url")

# Accepted spellings per field. camelCase names match the persisted records.
_ALIASES: dict[str, tuple[str, ...]] = {
    "client_id": ("client_id", "clientId"),
    "issuer": ("issuer", "iss"),
    "scope": ("scope",),
    "private_key": ("private_key", "privateKey"),
    "fhir_base_url": ("fhir_base_url", "fhirBaseUrl"),
    "key_id": ("key_id", "keyId", "kid"),
    "signing_algorithm": ("signing_algorithm", "signingAlgorithm"),
    "organization_id": ("organization_id", "organizationId"),
    "token_endpoint": ("token_endpoint", "tokenEndpoint"),
}


def resolve(raw: Mapping[str, Any]) -> ClientConfig:
    """Validate ``raw`` and return an immutable ClientConfig.

    Pure and deterministic: no I/O, same input gives the same result or the
    same error.

    Raises:
        MissingFieldError: a required field is absent or blank.
        InvalidFieldError: a URL field is not an absolute http(s) URL.
        InvalidKeyError: the key does not parse or does not match the algorithm.
    """
    values = {name: _lookup(raw, name) for name in _ALIASES}

    for name in REQUIRED_FIELDS:
        if not values[name]:
            raise MissingFieldError(name)

    issuer = _absolute_url("issuer", values["issuer"])
    fhir_base_url = _absolute_url("fhir_base_url", values["fhir_base_url"])
    token_endpoint = values["token_endpoint"] or None
    if token_endpoint is not None:
        token_endpoint = _absolute_url("token_endpoint", token_endpoint)

    algorithm = (values["signing_algorithm"] or DEFAULT_SIGNING_ALGORITHM).upper()
    private_key = values["private_key"]
    load_signing_key(private_key, algorithm)

    return ClientConfig(
        client_id=values["client_id"],
        issuer=issuer,
        scope=" ".join(values["scope"].split()),
        private_key=SecretStr(private_key),
        fhir_base_url=fhir_base_url,
        key_id=values["key_id"] or None,
        signing_algorithm=algorithm,
        organization_id=values["organization_id"] or None,
        token_endpoint=token_endpoint,
    )


def _lookup(raw: Mapping[str, Any], name: str) -> str:
    for alias in _ALIASES[name]:
        value = raw.get(alias)
        if value is None:
            continue
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        elif isinstance(value, Mapping):
            # JWK supplied as an already-decoded object
            value = json.dumps(dict(value))
        return str(value).strip()
    return ""


def _absolute_url(field: str, value: str) -> str:
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https"):
        raise InvalidFieldError(field, f"expected an http(s) URL, got {value!r}")
    if not parts.netloc or not parts.hostname:
        raise InvalidFieldError(field, f"URL has no host: {value!r}")
    return value
