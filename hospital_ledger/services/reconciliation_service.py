"""
Ledger sync and cross-check.

sync() walks every producing entity and repairs drift between
its active credits and what its adapter recognizes today: it
posts missing credits, reverses stale ones and reverses credits
whose entity no longer exists. It is safe to run repeatedly; a
second run over unchanged data reports no changes.

cross_check() compares the two independent revenue paths (ledger
rows and source aggregation) over all time.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_ledger.clock import SystemClock
from hospital_ledger.models.enums import ReferenceType
from hospital_ledger.schemas.ledger import (
    SourceSyncReport,
    SyncReport,
    CrossCheckLine,
    CrossCheckReport,
)
from hospital_ledger.schemas.revenue import RevenueWindow
from hospital_ledger.services.audit_service import AuditService
from hospital_ledger.services.ledger_service import LedgerService
from hospital_ledger.services.revenue_aggregator import RevenueAggregator
from hospital_ledger.services.transaction_binder import Outcome, TransactionBinder

logger = logging.getLogger(__name__)

_OUTCOME_FIELDS = {
    Outcome.UNCHANGED: "unchanged",
    Outcome.CREDITED: "credited",
    Outcome.REVERSED: "reversed",
    Outcome.REBOOKED: "rebooked",
}


class ReconciliationService:

    def __init__(self, db: Session, clock=None, user_id_provider=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.audit = AuditService(db)
        self.ledger = LedgerService(
            db, clock=self.clock, audit=self.audit,
            user_id_provider=user_id_provider,
        )
        self.binder = TransactionBinder(db, self.ledger)

    def sync(self, dry_run: bool = False,
             reference_type: ReferenceType | None = None) -> SyncReport:
        """Repair (or with dry_run, only count) ledger drift per source."""
        reports = []
        for source in self.binder.sources.values():
            if reference_type is not None and source.reference_type != reference_type:
                continue
            reports.append(self._sync_source(source, dry_run))

        total = sum(r.changes for r in reports)
        self.audit.log(
            "info",
            "Ledger sync dry run" if dry_run else "Ledger sync",
            {"total_changes": total, "reference_type": reference_type},
            event_type="ledger_sync",
        )
        logger.info("Ledger sync finished: %d change(s), dry_run=%s", total, dry_run)
        return SyncReport(dry_run=dry_run, sources=reports, total_changes=total)

    def _sync_source(self, source, dry_run: bool) -> SourceSyncReport:
        report = SourceSyncReport(reference_type=source.reference_type)
        entities = self.db.execute(
            select(source.model).order_by(source.model.id)
        ).scalars().all()

        for entity in entities:
            report.checked += 1
            try:
                if dry_run:
                    outcome = self.binder.plan(entity)
                else:
                    with self.db.begin_nested():
                        outcome = self.binder.reconcile(
                            entity, reason=f"{source.label} sync"
                        )
            except SQLAlchemyError:
                logger.exception(
                    "Sync failed for %s #%s", source.reference_type.value, entity.id
                )
                report.errors += 1
                continue
            field = _OUTCOME_FIELDS[outcome]
            setattr(report, field, getattr(report, field) + 1)

        existing = {entity.id for entity in entities}
        orphans = self.ledger.referenced_with_active_credits(source.reference_type)
        for reference_id in sorted(orphans - existing):
            if not dry_run:
                self.ledger.reverse_active_credits(
                    source.reference_type, reference_id,
                    f"{source.label} no longer exists",
                )
            report.orphans_reversed += 1
        return report

    def cross_check(self) -> CrossCheckReport:
        """All-time ledger net per source next to the matching bucket."""
        aggregator = RevenueAggregator(self.db, self.clock)
        window = RevenueWindow.all_time()
        net = self.ledger.net_by_reference_type()

        lines = [
            _line(
                "appointments",
                net[ReferenceType.APPOINTMENT],
                aggregator.appointment_revenue(window),
            ),
            _line(
                "department_services",
                net[ReferenceType.APPOINTMENT_SERVICE],
                aggregator.department_revenue(window)
                + aggregator.laboratory_service_revenue(window),
            ),
            _line(
                "pharmacy",
                net[ReferenceType.SALE],
                aggregator.pharmacy_revenue(window),
            ),
            _line("lab_test_requests", net[ReferenceType.LAB_TEST_REQUEST], None),
            _line("payments", net[ReferenceType.PAYMENT], None),
        ]
        consistent = all(line.matches for line in lines if line.matches is not None)
        if not consistent:
            logger.warning(
                "Ledger and aggregation disagree: %s",
                [line.name for line in lines if line.matches is False],
            )
        return CrossCheckReport(lines=lines, consistent=consistent)


def _line(name, ledger, aggregated) -> CrossCheckLine:
    if aggregated is None:
        return CrossCheckLine(
            name=name, ledger=ledger, aggregated=None,
            difference=None, matches=None,
        )
    difference = ledger - aggregated
    return CrossCheckLine(
        name=name,
        ledger=ledger,
        aggregated=aggregated,
        difference=difference,
        matches=difference == 0,
    )
