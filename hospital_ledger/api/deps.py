"""
Shared request dependencies.

The clock is a dependency so tests can freeze time for a whole
request; the acting user comes from the X-User-Id header.
"""

from fastapi import Header, HTTPException

from hospital_ledger.clock import SystemClock
from hospital_ledger.exceptions import (
    LedgerError,
    RecordNotFound,
    IntegrityViolation,
    ConnectionLost,
)

_system_clock = SystemClock()


def get_clock():
    return _system_clock


def get_user_id(x_user_id: int | None = Header(default=None)) -> int | None:
    return x_user_id


def http_error(exc: Exception) -> HTTPException:
    """Map a domain error onto the HTTP status it stands for."""
    if isinstance(exc, RecordNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, IntegrityViolation):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ConnectionLost):
        return HTTPException(status_code=503, detail="Database unavailable")
    if isinstance(exc, (LedgerError, ValueError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail="Internal error")
