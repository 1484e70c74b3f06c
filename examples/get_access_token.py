"""Example: obtain a SMART backend-services token and read a Patient (mocked servers).

Generates a throwaway RSA key, points a SmartClient at an in-process
authorization server and FHIR server, and walks the whole flow.

Usage:
    python examples/get_access_token.py
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from smart_backend.auth import LoggingAuditSink, SmartClient
from smart_backend.config import resolve
from smart_backend.fhir import FHIRClient

ISSUER = "https://auth.hospital.example"
TOKEN_URL = f"{ISSUER}/oauth2/token"
FHIR_BASE_URL = "https://fhir.hospital.example/r4"


def mock_servers(request: httpx.Request) -> httpx.Response:
    url = str(request.url)
    if url == f"{ISSUER}/.well-known/smart-configuration":
        return httpx.Response(200, json={"token_endpoint": TOKEN_URL})
    if url == TOKEN_URL:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        claims = jwt.decode(form["client_assertion"], options={"verify_signature": False})
        print(f"  token endpoint saw assertion iss={claims['iss']} aud={claims['aud']}")
        return httpx.Response(200, json={"access_token": "mock-token-xyz", "expires_in": 3600})
    if url.startswith(FHIR_BASE_URL):
        return httpx.Response(200, json={"resourceType": "Patient", "id": "patient-123"})
    return httpx.Response(404)


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print("=== SMART Backend Services Demo ===\n")

    # 1. Resolve a client configuration
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    config = resolve(
        {
            "organizationId": "org-demo",
            "clientId": "demo-backend-client",
            "iss": ISSUER,
            "scope": "system/Patient.read",
            "privateKey": pem,
            "fhirBaseUrl": FHIR_BASE_URL,
            "kid": "demo-key-1",
        }
    )
    print(f"Resolved config: {config!r}\n")

    # 2. Fetch a token (twice; the second comes from cache)
    http = httpx.AsyncClient(transport=httpx.MockTransport(mock_servers))
    async with SmartClient(http_client=http, audit_sink=LoggingAuditSink()) as smart:
        token = await smart.get_access_token(config)
        again = await smart.get_access_token(config)
        print(f"\nToken obtained: {token[:12]}... (cached on second call: {token == again})")

        # 3. Read a resource with it
        fhir = FHIRClient(config, smart, smart.http_client)
        response = await fhir.read("Patient", "patient-123")
        print(f"FHIR response ({response.status_code}):")
        print(json.dumps(response.json(), indent=2))
    await http.aclose()


if __name__ == "__main__":
    asyncio.run(main())
