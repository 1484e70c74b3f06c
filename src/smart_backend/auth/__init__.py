from .assertion import ASSERTION_LIFETIME_SECONDS, CLIENT_ASSERTION_TYPE, AssertionSigner
from .audit import AuditEvent, AuditOutcome, AuditSink, LoggingAuditSink, NullAuditSink
from .client import SmartClient
from .coordinator import AccessCoordinator
from .discovery import DiscoveryClient, DiscoveryDocument, normalize_issuer
from .exchange import GRANT_CLIENT_CREDENTIALS, GRANT_REFRESH_TOKEN, TokenExchange
from .singleflight import SingleFlight
from .tokens import TokenResponse, TokenState

__all__ = [
    "ASSERTION_LIFETIME_SECONDS",
    "AccessCoordinator",
    "AssertionSigner",
    "AuditEvent",
    "AuditOutcome",
    "AuditSink",
    "CLIENT_ASSERTION_TYPE",
    "DiscoveryClient",
    "DiscoveryDocument",
    "GRANT_CLIENT_CREDENTIALS",
    "GRANT_REFRESH_TOKEN",
    "LoggingAuditSink",
    "NullAuditSink",
    "SingleFlight",
    "SmartClient",
    "TokenExchange",
    "TokenResponse",
    "TokenState",
    "normalize_issuer",
]
