"""
Typed domain errors.

Storage-layer exceptions never leave the service layer raw;
they are translated into one of these so callers can react
to the kind of failure rather than to a driver message.
"""

from contextlib import contextmanager

from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError


class LedgerError(Exception):
    """Base class for all domain errors raised by the engine."""


class RecordNotFound(LedgerError):
    """Raised when a referenced entity does not exist."""


class IntegrityViolation(LedgerError):
    """Raised when a write breaks a foreign key or check constraint."""


class DuplicateEntry(IntegrityViolation):
    """Raised when a write collides with a unique constraint."""


class ConnectionLost(LedgerError):
    """Raised when the database connection fails mid-operation."""


class InsufficientStock(LedgerError):
    """Raised when a sale asks for more units than are in stock."""

    def __init__(self, medicine_name: str, available: int, requested: int):
        self.medicine_name = medicine_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {medicine_name}: "
            f"available={available}, requested={requested}"
        )


class DayCloseFailed(LedgerError):
    """Raised when closing the business day could not complete."""


class CorruptDayState(LedgerError):
    """Raised when a stored day-state value cannot be read back."""


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


@contextmanager
def translate_db_errors():
    """Re-raise SQLAlchemy errors as domain errors."""
    try:
        yield
    except IntegrityError as e:
        if _is_unique_violation(e):
            raise DuplicateEntry(str(e.orig)) from e
        raise IntegrityViolation(str(e.orig)) from e
    except (OperationalError, DisconnectionError) as e:
        raise ConnectionLost(str(e)) from e
