"""
Audit sink.

Fire-and-forget: every call writes to the application log and
appends an AuditLog row. Auditing must never break the
operation being audited, so failures here are logged and
dropped.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from hospital_ledger.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):  # enums
        return value.value
    return value


class AuditService:

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        level: str,
        message: str,
        context: dict | None = None,
        event_type: str = "ledger",
    ) -> None:
        context = {k: _jsonable(v) for k, v in (context or {}).items()}
        logger.log(
            _LEVELS.get(level, logging.INFO),
            "%s %s",
            message,
            json.dumps(context, default=str),
        )
        try:
            with self.db.begin_nested():
                self.db.add(AuditLog(
                    level=level,
                    event_type=event_type,
                    message=message,
                    context=context,
                ))
        except Exception:
            logger.exception("Failed to write audit record: %s", message)
