"""
Repair drift between revenue-producing records and the ledger.

Usage:
    python -m scripts.sync_ledger [--dry-run] [--type appointment]
"""

import argparse
import logging
import sys

from hospital_ledger.config import get_settings
from hospital_ledger.models.base import SessionLocal
from hospital_ledger.models.enums import ReferenceType
from hospital_ledger.services.reconciliation_service import ReconciliationService

logger = logging.getLogger("sync_ledger")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="report what would change without writing",
    )
    parser.add_argument(
        "--type",
        dest="reference_type",
        choices=[r.value for r in ReferenceType],
        help="only sync one kind of record",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    reference_type = (
        ReferenceType(args.reference_type) if args.reference_type else None
    )

    db = SessionLocal()
    try:
        report = ReconciliationService(db).sync(
            dry_run=args.dry_run, reference_type=reference_type
        )
        if args.dry_run:
            db.rollback()
        else:
            db.commit()
    finally:
        db.close()

    for source in report.sources:
        logger.info(
            "%s: checked=%d credited=%d reversed=%d rebooked=%d "
            "orphans=%d errors=%d",
            source.reference_type.value, source.checked, source.credited,
            source.reversed, source.rebooked, source.orphans_reversed,
            source.errors,
        )
    verb = "would change" if args.dry_run else "changed"
    logger.info("Sync finished: %d record(s) %s", report.total_changes, verb)
    return 1 if any(s.errors for s in report.sources) else 0


if __name__ == "__main__":
    sys.exit(main())
