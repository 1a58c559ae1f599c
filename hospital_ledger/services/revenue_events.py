"""
Synchronous domain events for revenue-producing entities.

The entity store publishes created/updated/deleted events here
after flushing a write; registered handlers turn them into
ledger commands. Each handler runs in its own SAVEPOINT. A
handler failure rolls back only that handler's writes, is
logged and audited, and never reaches the business operation
that caused the event.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.orm import Session

from hospital_ledger.services.audit_service import AuditService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityChange:
    """Previously persisted values of an updated entity."""
    previous: dict = field(default_factory=dict)
    changed: frozenset = frozenset()

    def was_changed(self, *fields: str) -> bool:
        return any(f in self.changed for f in fields)


class RevenueRecognitionHandler(Protocol):

    def on_created(self, entity) -> None: ...

    def on_updated(self, entity, change: EntityChange) -> None: ...

    def on_deleted(self, entity) -> None: ...


class RevenueEventPublisher:

    def __init__(self, db: Session, audit: AuditService | None = None):
        self.db = db
        self.audit = audit or AuditService(db)
        self._handlers: dict[type, list[RevenueRecognitionHandler]] = {}

    def register(self, entity_type: type,
                 handler: RevenueRecognitionHandler) -> None:
        self._handlers.setdefault(entity_type, []).append(handler)

    def handlers_for(self, entity) -> list[RevenueRecognitionHandler]:
        return self._handlers.get(type(entity), [])

    def created(self, entity) -> None:
        self._dispatch("created", entity, lambda h: h.on_created(entity))

    def updated(self, entity, change: EntityChange) -> None:
        self._dispatch(
            "updated", entity, lambda h: h.on_updated(entity, change)
        )

    def deleted(self, entity) -> None:
        self._dispatch("deleted", entity, lambda h: h.on_deleted(entity))

    def _dispatch(self, action: str, entity, call) -> None:
        for handler in self.handlers_for(entity):
            try:
                with self.db.begin_nested():
                    call(handler)
            except Exception as e:
                entity_name = type(entity).__name__
                logger.exception(
                    "Ledger handler failed on %s %s id=%s",
                    entity_name, action, getattr(entity, "id", None),
                )
                self.audit.log(
                    "error",
                    f"Failed to book {entity_name} {action}",
                    {
                        "entity": entity_name,
                        "entity_id": getattr(entity, "id", None),
                        "action": action,
                        "error": str(e),
                    },
                    event_type="ledger_failure",
                )
