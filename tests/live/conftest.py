"""Skip guards for live tests.

Every live test that requires external credentials is guarded by a pytest.mark.skipif
that checks for the required environment variable. Tests skip when credentials
are absent; they never fail because of missing config.

Required environment variables:
  SMART_CLIENT_ID          Client ID registered with the sandbox
  SMART_ISSUER             Authorization server issuer URL
  SMART_PRIVATE_KEY_PATH   Path to the private key (PEM or JWK JSON) registered with it
  SMART_FHIR_BASE_URL      FHIR R4 base URL
Optional:
  SMART_SCOPE              Defaults to system/Patient.read
  SMART_KEY_ID             kid header for the client assertion
  SMART_SIGNING_ALGORITHM  Defaults to RS384

Set them in your shell before running:
  export SMART_CLIENT_ID=your_client_id
  pytest tests/live -v -m live
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from smart_backend.config import ClientConfig, resolve

_REQUIRED = ("SMART_CLIENT_ID", "SMART_ISSUER", "SMART_PRIVATE_KEY_PATH", "SMART_FHIR_BASE_URL")


def _skip_unless(env_var: str, reason: str | None = None):
    """Return a pytest.mark.skipif that skips when env_var is not set."""
    msg = reason or f"Set {env_var} to run this test"
    return pytest.mark.skipif(not os.environ.get(env_var), reason=msg)


skip_no_smart = _skip_unless(
    "SMART_CLIENT_ID",
    "Set SMART_CLIENT_ID, SMART_ISSUER, SMART_PRIVATE_KEY_PATH and SMART_FHIR_BASE_URL to run sandbox tests",
)


@pytest.fixture(scope="session")
def sandbox_config() -> ClientConfig:
    missing = [var for var in _REQUIRED if not os.environ.get(var)]
    if missing:
        pytest.skip(f"{', '.join(missing)} not set")
    return resolve(
        {
            "client_id": os.environ["SMART_CLIENT_ID"],
            "issuer": os.environ["SMART_ISSUER"],
            "scope": os.environ.get("SMART_SCOPE", "system/Patient.read"),
            "private_key": Path(os.environ["SMART_PRIVATE_KEY_PATH"]).read_text(),
            "fhir_base_url": os.environ["SMART_FHIR_BASE_URL"],
            "key_id": os.environ.get("SMART_KEY_ID"),
            "signing_algorithm": os.environ.get("SMART_SIGNING_ALGORITHM"),
            "organization_id": "live-sandbox",
        }
    )
