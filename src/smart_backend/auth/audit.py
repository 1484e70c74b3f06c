"""Structured audit events emitted around token acquisition.

This package never writes to an audit store itself. It hands events to an
``AuditSink``; persisting them is the job of whatever sink the host supplies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

TOKEN_FETCH_ACTION = "token.fetch"
SMART_CLIENT_RESOURCE = "SmartFhirClient"


class AuditOutcome(str, Enum):
    ATTEMPT = "attempt"
    SUCCESS = "success"
    FAILURE = "failure"


class AuditEvent(BaseModel):
    """One audit record. Holds identities and outcomes, never secrets."""

    model_config = ConfigDict(frozen=True)

    action: str = TOKEN_FETCH_ACTION
    outcome: AuditOutcome
    organization_id: str | None = None
    client_id: str | None = None
    principal_id: str | None = None
    resource_type: str = SMART_CLIENT_RESOURCE
    detail: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditSink(Protocol):
    def log(self, event: AuditEvent) -> None: ...


class NullAuditSink:
    """Discard every event."""

    def log(self, event: AuditEvent) -> None:
        return None


class LoggingAuditSink:
    """Write events to a stdlib logger, one line per event."""

    def __init__(self, logger_name: str = "smart_backend.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, event: AuditEvent) -> None:
        level = logging.WARNING if event.outcome is AuditOutcome.FAILURE else logging.INFO
        self._logger.log(
            level,
            "%s %s organization=%s client_id=%s resource=%s%s",
            event.action,
            event.outcome.value,
            event.organization_id or "-",
            event.client_id or "-",
            event.resource_type,
            f" detail={event.detail}" if event.detail else "",
        )


def emit(sink: AuditSink, event: AuditEvent) -> None:
    """Deliver ``event``; a failing sink is logged and otherwise ignored."""
    try:
        sink.log(event)
    except Exception:
        logger.exception("Audit sink %r failed for %s", sink, event.action)
