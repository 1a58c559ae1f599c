"""
Record service: the boundary where producing entities are written.

Patient-facing CRUD lives elsewhere; this service is the narrow
path it uses to persist revenue-relevant entities. Each write is
flushed first, then published as a domain event so the ledger
sees the persisted state and the previous values side by side.

Lock order for every write is wallet row, then entity rows. The
wallet is taken before the flush so no writer holds an entity
row while waiting for the wallet.
"""

from decimal import Decimal

from sqlalchemy import Numeric, inspect, select
from sqlalchemy.orm import Session

from hospital_ledger.clock import SystemClock
from hospital_ledger.exceptions import translate_db_errors
from hospital_ledger.models.appointment import Appointment, AppointmentService
from hospital_ledger.services.audit_service import AuditService
from hospital_ledger.services.ledger_service import LedgerService
from hospital_ledger.services.revenue_events import (
    EntityChange,
    RevenueEventPublisher,
)
from hospital_ledger.services.transaction_binder import TransactionBinder


def build_publisher(ledger: LedgerService) -> RevenueEventPublisher:
    """Publisher with the transaction binder registered for every source."""
    publisher = RevenueEventPublisher(ledger.db, ledger.audit)
    TransactionBinder(ledger.db, ledger).register(publisher)
    return publisher


def stored_form(column, value):
    """A value as its column would store it: Numeric is quantized to scale."""
    if value is None or not isinstance(column.type, Numeric):
        return value
    if column.type.scale is None:
        return Decimal(str(value))
    return Decimal(str(value)).quantize(Decimal(1).scaleb(-column.type.scale))


def column_values(entity) -> dict:
    """Current values of every mapped column of an entity, in stored form."""
    mapper = inspect(type(entity))
    return {
        attr.key: stored_form(attr.columns[0], getattr(entity, attr.key))
        for attr in mapper.column_attrs
    }


class RecordService:

    def __init__(
        self,
        db: Session,
        clock=None,
        user_id_provider=None,
        publisher: RevenueEventPublisher | None = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.ledger = LedgerService(
            db, clock=self.clock, audit=AuditService(db),
            user_id_provider=user_id_provider,
        )
        self.publisher = publisher or build_publisher(self.ledger)

    def create(self, entity):
        """Persist a new entity and publish its creation."""
        self.ledger.lock_wallet()
        with translate_db_errors():
            self.db.add(entity)
            self.db.flush()
        self.publisher.created(entity)
        return entity

    def update(self, entity, **changes):
        """
        Apply field changes, persist them and publish the delta.

        Only fields whose stored value actually differs are reported
        as changed: fee=100.1 over a stored 100.10 is no change.
        """
        previous = column_values(entity)
        for name in changes:
            if name not in previous:
                raise AttributeError(
                    f"{type(entity).__name__} has no column '{name}'"
                )

        self.ledger.lock_wallet()
        for name, value in changes.items():
            setattr(entity, name, value)
        with translate_db_errors():
            self.db.flush()

        current = column_values(entity)
        changed = frozenset(
            name for name in changes if previous[name] != current[name]
        )
        self.publisher.updated(
            entity, EntityChange(previous=previous, changed=changed)
        )
        return entity

    def delete(self, entity) -> None:
        """
        Delete an entity and publish its removal.

        An appointment's services go with it; they are removed in
        the same flush so no event sees a half-deleted appointment.
        """
        self.ledger.lock_wallet()
        dependents = []
        if isinstance(entity, Appointment):
            dependents = list(self.db.execute(
                select(AppointmentService)
                .where(AppointmentService.appointment_id == entity.id)
            ).scalars().all())

        with translate_db_errors():
            for dependent in dependents:
                self.db.delete(dependent)
            self.db.delete(entity)
            self.db.flush()

        for dependent in dependents:
            self.publisher.deleted(dependent)
        self.publisher.deleted(entity)
