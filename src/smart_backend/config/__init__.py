from .keys import SUPPORTED_ALGORITHMS, load_signing_key
from .models import DEFAULT_SIGNING_ALGORITHM, ClientConfig
from .resolver import REQUIRED_FIELDS, resolve
from .settings import SmartClientSettings

__all__ = [
    "ClientConfig",
    "DEFAULT_SIGNING_ALGORITHM",
    "REQUIRED_FIELDS",
    "SUPPORTED_ALGORITHMS",
    "SmartClientSettings",
    "load_signing_key",
    "resolve",
]
