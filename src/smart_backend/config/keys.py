"""Private key loading for client-assertion signing.

Keys arrive as plaintext from the external key-management service, either as
PEM (PKCS#1 or PKCS#8, unencrypted) or as a JWK JSON object.
"""

from __future__ import annotations

import json
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import ECAlgorithm, RSAAlgorithm
from jwt.exceptions import PyJWTError

from ..errors import InvalidKeyError

SigningKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

RSA_ALGORITHMS = frozenset({"RS256", "RS384", "RS512", "PS256", "PS384", "PS512"})

EC_CURVES: dict[str, type[ec.EllipticCurve]] = {
    "ES256": ec.SECP256R1,
    "ES384": ec.SECP384R1,
    "ES512": ec.SECP521R1,
}

SUPPORTED_ALGORITHMS = RSA_ALGORITHMS | frozenset(EC_CURVES)


def load_signing_key(private_key: str, algorithm: str) -> SigningKey:
    """Parse ``private_key`` and check it can sign with ``algorithm``.

    Raises:
        InvalidKeyError: unsupported algorithm, unparseable key, public-only
            key, wrong key family, or an EC curve the algorithm does not name.
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise InvalidKeyError(
            f"Unsupported signing algorithm {algorithm!r}; "
            f"expected one of {', '.join(sorted(SUPPORTED_ALGORITHMS))}"
        )

    text = private_key.strip()
    if text.startswith("{"):
        key = _load_jwk(text, algorithm)
    else:
        key = _load_pem(text)

    if algorithm in RSA_ALGORITHMS:
        if not isinstance(key, rsa.RSAPrivateKey):
            raise InvalidKeyError(f"{algorithm} requires an RSA private key")
        return key

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise InvalidKeyError(f"{algorithm} requires an EC private key")
    expected_curve = EC_CURVES[algorithm]
    if not isinstance(key.curve, expected_curve):
        raise InvalidKeyError(
            f"{algorithm} requires curve {expected_curve.name}, got {key.curve.name}"
        )
    return key


def _load_pem(text: str) -> object:
    # Keys copied through env vars or JSON often carry literal "\n" sequences.
    if "-----BEGIN" in text and "\n" not in text:
        text = text.replace("\\n", "\n")
    if "PUBLIC KEY-----" in text:
        raise InvalidKeyError("A private key is required, got a public key")
    try:
        return serialization.load_pem_private_key(text.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidKeyError("Private key is not a valid unencrypted PEM key") from exc


def _load_jwk(text: str, algorithm: str) -> object:
    try:
        jwk = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidKeyError("Private key looks like a JWK but is not valid JSON") from exc
    if not isinstance(jwk, dict):
        raise InvalidKeyError("JWK must be a JSON object")
    if "d" not in jwk:
        raise InvalidKeyError("JWK has no private component ('d')")

    loader = RSAAlgorithm if algorithm in RSA_ALGORITHMS else ECAlgorithm
    try:
        return loader.from_jwk(jwk)
    except (PyJWTError, ValueError, TypeError, KeyError) as exc:
        raise InvalidKeyError(f"JWK cannot be used for {algorithm}") from exc
