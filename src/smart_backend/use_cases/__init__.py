from .access_token import (
    AUTHORIZATION_FAILED,
    AUTHORIZATION_UNAVAILABLE,
    INTERNAL_ERROR,
    AccessTokenUseCase,
)
from .records import KeyDecryptor, SmartClientRecord, load_client_config

__all__ = [
    "AUTHORIZATION_FAILED",
    "AUTHORIZATION_UNAVAILABLE",
    "INTERNAL_ERROR",
    "AccessTokenUseCase",
    "KeyDecryptor",
    "SmartClientRecord",
    "load_client_config",
]
