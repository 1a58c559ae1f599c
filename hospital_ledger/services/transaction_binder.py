"""
Transaction binder: turns entity lifecycle events into ledger rows.

Per producing entity the ledger moves between:

    NoTransaction -> HasActiveCredit -> Reversed -> HasActiveCredit
                                                 -> NoTransaction

Every transition goes through reconcile(): compare what the
adapter recognizes now with the entity's active credits, and
append only the rows needed to make them agree. Updates are
gated on the fields that actually changed, so replaying an
event that changed nothing writes nothing.

Locks are always taken wallet first, then the entity, then its
parent appointment. A cascade never waits for a row that its
counterpart holds while waiting for the wallet.
"""

import enum
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_ledger.models.appointment import Appointment, AppointmentService
from hospital_ledger.money import ZERO
from hospital_ledger.services.ledger_service import LedgerService
from hospital_ledger.services.revenue_events import (
    EntityChange,
    RevenueEventPublisher,
)
from hospital_ledger.services.revenue_sources import (
    RevenueSource,
    build_sources,
)

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    UNCHANGED = "unchanged"
    CREDITED = "credited"
    REVERSED = "reversed"
    REBOOKED = "rebooked"


class TransactionBinder:
    """RevenueRecognitionHandler for every producing entity type."""

    def __init__(self, db: Session, ledger: LedgerService,
                 sources: dict[type, RevenueSource] | None = None):
        self.db = db
        self.ledger = ledger
        self.sources = sources or build_sources(db, ledger.clock)

    def register(self, publisher: RevenueEventPublisher) -> None:
        for model in self.sources:
            publisher.register(model, self)

    def source_for(self, entity) -> RevenueSource:
        return self.sources[type(entity)]

    # --- Lifecycle callbacks ---

    def on_created(self, entity) -> None:
        source = self.source_for(entity)
        self.reconcile(entity, reason=f"{source.label} created")
        if isinstance(entity, AppointmentService):
            self._reconcile_parent(entity)

    def on_updated(self, entity, change: EntityChange) -> None:
        source = self.source_for(entity)
        if change.changed & source.watched_fields:
            self.reconcile(
                entity,
                reason=f"{source.label} updated",
                rebook=bool(change.changed & source.rebook_fields),
            )

        if isinstance(entity, Appointment) and change.was_changed("status"):
            for service in self._services_of(entity):
                self.reconcile(service, reason="Appointment status changed")
        if isinstance(entity, AppointmentService):
            if change.was_changed("appointment_id"):
                previous_parent = self.db.get(
                    Appointment, change.previous.get("appointment_id")
                )
                if previous_parent is not None:
                    self.reconcile(
                        previous_parent, reason="Service moved to another appointment"
                    )
            self._reconcile_parent(entity)

    def on_deleted(self, entity) -> None:
        source = self.source_for(entity)
        self.ledger.reverse_active_credits(
            source.reference_type, entity.id, f"{source.label} deleted"
        )
        if isinstance(entity, AppointmentService):
            self._reconcile_parent(entity)

    # --- Core transition ---

    def reconcile(self, entity, reason: str, rebook: bool = False) -> Outcome:
        """
        Bring an entity's active credits in line with its recognition.

        rebook forces reverse-then-credit even when the amount is
        unchanged, for edits to money fields.
        """
        source = self.source_for(entity)
        self.ledger.lock_wallet()
        self._lock(source, entity)

        outcome, event = self._assess(source, entity, rebook)
        if outcome in (Outcome.REVERSED, Outcome.REBOOKED):
            suffix = (
                "no longer recognized" if outcome == Outcome.REVERSED
                else "reversing previous"
            )
            self.ledger.reverse_active_credits(
                source.reference_type, entity.id, f"{reason} - {suffix}"
            )
        if outcome in (Outcome.CREDITED, Outcome.REBOOKED):
            self._credit(source, entity, event, reason)
        return outcome

    def plan(self, entity) -> Outcome:
        """What reconcile() would do right now, without writing anything."""
        outcome, _ = self._assess(self.source_for(entity), entity, rebook=False)
        return outcome

    def _assess(self, source: RevenueSource, entity, rebook: bool):
        event = source.recognize(entity)
        active = self.ledger.active_credits(source.reference_type, entity.id)
        active_total = sum((c.amount for c in active), ZERO)

        if event is None:
            return (Outcome.REVERSED if active else Outcome.UNCHANGED), None
        if not active:
            return Outcome.CREDITED, event
        if rebook or len(active) > 1 or active_total != event.amount:
            return Outcome.REBOOKED, event
        return Outcome.UNCHANGED, event

    def _credit(self, source, entity, event, reason) -> None:
        self.ledger.credit(
            source.reference_type,
            entity.id,
            event.amount,
            f"{reason} - {event.description}",
            transaction_date=event.occurred_at,
        )

    def _lock(self, source: RevenueSource, entity) -> None:
        """Serialize writers of the same entity until commit."""
        self.db.execute(
            select(source.model.id)
            .where(source.model.id == entity.id)
            .with_for_update()
        )

    def _services_of(self, appointment: Appointment) -> list[AppointmentService]:
        return list(self.db.execute(
            select(AppointmentService)
            .where(AppointmentService.appointment_id == appointment.id)
            .order_by(AppointmentService.id)
        ).scalars().all())

    def _reconcile_parent(self, service: AppointmentService) -> None:
        appointment = self.db.get(Appointment, service.appointment_id)
        if appointment is not None:
            self.reconcile(appointment, reason="Appointment services changed")
