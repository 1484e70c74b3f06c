"""Shared pytest fixtures, mock factories, and test markers.

Test tiers
----------
  unit        Fast, fully offline, zero external dependencies.
              Always run.

  integration Fake authorization and FHIR servers over httpx.MockTransport.
              Always run. Validates the whole token flow without real
              network calls.

  quality     Property-based (Hypothesis) and invariant tests. Always run
              offline.

  live        Real SMART sandbox calls. Skipped unless the required
              environment variables are set. See tests/live/conftest.py.

Run specific tiers:
  pytest tests/unit tests/integration tests/quality   # offline only
  pytest tests/live -m live                           # live only
  pytest tests/ -v                                    # everything
"""

from __future__ import annotations

import pytest

from smart_backend.config import ClientConfig, resolve
from tests.fixtures.auth_server import FHIR_BASE_URL, ISSUER, MockAuthServer
from tests.fixtures.keys import generate_ec_pem, generate_rsa_pem

NOW = 1_700_000_000.0


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast offline unit tests")
    config.addinivalue_line("markers", "integration: mock-based integration tests")
    config.addinivalue_line("markers", "quality: property-based and invariant tests")
    config.addinivalue_line("markers", "live: requires real credentials (skipped by default)")


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced epoch clock, callable like time.time."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Key fixtures: real keys, generated once per session
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def rsa_key_pair() -> tuple[str, str]:
    return generate_rsa_pem()


@pytest.fixture(scope="session")
def ec_key_pair() -> tuple[str, str]:
    return generate_ec_pem()


@pytest.fixture
def rsa_private_pem(rsa_key_pair: tuple[str, str]) -> str:
    return rsa_key_pair[0]


@pytest.fixture
def rsa_public_pem(rsa_key_pair: tuple[str, str]) -> str:
    return rsa_key_pair[1]


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------

def make_raw_config(private_key: str, **overrides: object) -> dict:
    raw = {
        "client_id": "backend-client-1",
        "issuer": ISSUER,
        "scope": "system/Patient.read system/Observation.read",
        "private_key": private_key,
        "fhir_base_url": FHIR_BASE_URL,
        "organization_id": "org-1",
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def raw_config(rsa_private_pem: str) -> dict:
    return make_raw_config(rsa_private_pem)


@pytest.fixture
def client_config(raw_config: dict) -> ClientConfig:
    return resolve(raw_config)


# ---------------------------------------------------------------------------
# Fake servers
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_server() -> MockAuthServer:
    return MockAuthServer()
