"""Integration test: stored record → SmartClient → FHIR read against mock servers.

Flow: SmartClientRecord → decrypt + resolve → discovery (mock AS)
      → signed client assertion → token POST (mock AS)
      → Bearer FHIR GET (mock FHIR server) → 401 → re-auth → retry
"""

from __future__ import annotations

import asyncio

import jwt
import pytest

from smart_backend.auth.audit import AuditOutcome
from smart_backend.auth.client import SmartClient
from smart_backend.config import SmartClientSettings
from smart_backend.fhir import FHIRClient
from smart_backend.use_cases import AccessTokenUseCase, SmartClientRecord, load_client_config
from tests.conftest import FakeClock
from tests.fixtures.auth_server import FHIR_BASE_URL, ISSUER, TOKEN_ENDPOINT, MockAuthServer

pytestmark = pytest.mark.integration


class PlainDecryptor:
    async def decrypt(self, ciphertext: str) -> str:
        return ciphertext


class ListSink:
    def __init__(self) -> None:
        self.events = []

    def log(self, event) -> None:
        self.events.append(event)


def make_record(private_pem: str, organization_id: str = "org-1") -> SmartClientRecord:
    return SmartClientRecord.model_validate(
        {
            "organizationId": organization_id,
            "clientId": f"client-{organization_id}",
            "iss": ISSUER,
            "scope": "system/Patient.read",
            "privateKey": private_pem,
            "fhirBaseUrl": FHIR_BASE_URL,
            "kid": "integration-key",
        }
    )


class TestAccessTokenFlow:
    """Stored record to access token via the use case."""

    @pytest.mark.asyncio
    async def test_record_to_token(
        self, auth_server: MockAuthServer, clock: FakeClock, rsa_key_pair: tuple[str, str]
    ) -> None:
        private_pem, public_pem = rsa_key_pair
        async with SmartClient(http_client=auth_server.client(), clock=clock) as smart:
            status, body = await AccessTokenUseCase(smart, PlainDecryptor()).handle(
                make_record(private_pem)
            )

        assert (status, body) == (200, {"accessToken": "abc"})
        assert auth_server.discovery_calls == 1
        assert auth_server.token_calls == 1

        form = auth_server.token_forms[0]
        header = jwt.get_unverified_header(form["client_assertion"])
        assert header["kid"] == "integration-key"
        claims = jwt.decode(
            form["client_assertion"],
            public_pem,
            algorithms=["RS384"],
            audience=TOKEN_ENDPOINT,
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims["sub"] == "client-org-1"

    @pytest.mark.asyncio
    async def test_burst_of_requests_for_many_tenants(
        self, clock: FakeClock, rsa_private_pem: str
    ) -> None:
        server = MockAuthServer(token_delay=0.01)
        sink = ListSink()
        smart = SmartClient(http_client=server.client(), audit_sink=sink, clock=clock)
        use_case = AccessTokenUseCase(smart, PlainDecryptor())
        records = [make_record(rsa_private_pem, f"org-{i}") for i in range(4)]

        results = await asyncio.gather(
            *(use_case.handle(record) for record in records for _ in range(5))
        )

        assert all(status == 200 for status, _ in results)
        assert server.token_calls == 4
        assert server.discovery_calls == 1
        successes = [e for e in sink.events if e.outcome is AuditOutcome.SUCCESS]
        assert sorted(e.organization_id for e in successes) == [f"org-{i}" for i in range(4)]

    @pytest.mark.asyncio
    async def test_settings_skew_applied(
        self, auth_server: MockAuthServer, clock: FakeClock, rsa_private_pem: str
    ) -> None:
        settings = SmartClientSettings(clock_skew_seconds=120)
        smart = SmartClient(settings=settings, http_client=auth_server.client(), clock=clock)
        config = await load_client_config(make_record(rsa_private_pem), PlainDecryptor())
        await smart.get_access_token(config)
        assert smart.token_state(config).expires_at == clock() + 3600 - 120


class TestFHIRFlow:
    """Token acquisition feeding authenticated FHIR requests."""

    @pytest.mark.asyncio
    async def test_fhir_read_uses_cached_token(
        self, auth_server: MockAuthServer, clock: FakeClock, rsa_private_pem: str
    ) -> None:
        auth_server.fhir_handler = lambda request: (200, {"resourceType": "Patient", "id": "p-1"})
        smart = SmartClient(http_client=auth_server.client(), clock=clock)
        config = await load_client_config(make_record(rsa_private_pem), PlainDecryptor())
        fhir = FHIRClient(config, smart, smart.http_client)

        first = await fhir.read("Patient", "p-1")
        second = await fhir.search("Patient", {"name": "Chalmers"})

        assert first.json()["id"] == "p-1"
        assert second.status_code == 200
        assert auth_server.token_calls == 1
        fhir_requests = [r for r in auth_server.requests if str(r.url).startswith(FHIR_BASE_URL)]
        assert {r.headers["Authorization"] for r in fhir_requests} == {"Bearer abc"}

    @pytest.mark.asyncio
    async def test_revoked_token_triggers_single_reauth(
        self, auth_server: MockAuthServer, clock: FakeClock, rsa_private_pem: str
    ) -> None:
        auth_server.issue_tokens("revoked", "fresh")

        def fhir(request):
            if request.headers["Authorization"] == "Bearer revoked":
                return 401, {"resourceType": "OperationOutcome"}
            return 200, {"resourceType": "Patient", "id": "p-1"}

        auth_server.fhir_handler = fhir
        smart = SmartClient(http_client=auth_server.client(), clock=clock)
        config = await load_client_config(make_record(rsa_private_pem), PlainDecryptor())

        response = await FHIRClient(config, smart, smart.http_client).read("Patient", "p-1")

        assert response.status_code == 200
        assert auth_server.token_calls == 2
        assert auth_server.fhir_calls == 2
        assert smart.token_state(config).access_token == "fresh"
