"""Fire-and-forget audit events for authentication activity.

Events are emitted only after the transaction that produced them has been
committed. Delivery runs on the request's background task queue when one is
bound, so a slow or failing sink never delays or fails the auth decision.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from staff_auth.core.logging import AUDIT_LOGGER_NAME
from staff_auth.db.base import utcnow
from staff_auth.db.session import session_scope
from staff_auth.models.audit_log import AuditLog
from staff_auth.models.enums import AuditAction

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "critical": logging.CRITICAL,
}


@dataclass(frozen=True)
class AuditEvent:
    actor_id: UUID | None
    action: AuditAction
    details: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None
    severity: str = "info"
    entity_type: str = "auth"
    timestamp: dt.datetime = field(default_factory=utcnow)


class AuditSink(Protocol):
    def write(self, event: AuditEvent) -> None: ...


class DatabaseAuditSink:
    """Writes events to ``audit_logs`` through a session of its own."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def write(self, event: AuditEvent) -> None:
        audit_logger.log(
            _LEVELS.get(event.severity, logging.INFO),
            "%s actor=%s ip=%s details=%s",
            event.action.value,
            event.actor_id,
            event.ip_address,
            event.details,
        )
        with session_scope(self._session_factory) as db:
            db.add(
                AuditLog(
                    staff_id=event.actor_id,
                    action=event.action.value,
                    entity_type=event.entity_type,
                    severity=event.severity,
                    details=_jsonable(event.details),
                    ip_address=event.ip_address,
                    created_at=event.timestamp,
                )
            )


class AuditDispatcher:
    def __init__(self, sink: AuditSink, background_tasks: BackgroundTasks | None = None):
        self._sink = sink
        self._background_tasks = background_tasks

    def emit(self, event: AuditEvent) -> None:
        if self._background_tasks is not None:
            self._background_tasks.add_task(self._deliver, event)
            return
        self._deliver(event)

    def _deliver(self, event: AuditEvent) -> None:
        try:
            self._sink.write(event)
        except Exception:  # noqa: BLE001
            logger.exception("Audit delivery failed for %s", event.action.value)


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, (UUID, dt.datetime)):
            cleaned[key] = str(value)
        else:
            cleaned[key] = value
    return cleaned
