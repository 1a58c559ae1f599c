"""
Appointment models.

An appointment earns its consultation fee (less discount) unless
services are attached to it, in which case the attached services
carry the revenue instead.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_ledger.models.base import Base
from hospital_ledger.models.enums import AppointmentStatus


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True)
    appointment_number: Mapped[str | None] = mapped_column(
        String(50), unique=True, nullable=True
    )
    patient_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True
    )
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"), nullable=True, index=True
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        SAEnum(
            AppointmentStatus,
            name="appointment_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    discount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    appointment_date: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )

    department: Mapped["Department | None"] = relationship()
    services: Mapped[list["AppointmentService"]] = relationship(
        back_populates="appointment"
    )

    @property
    def label(self) -> str:
        return self.appointment_number or f"ID: {self.id}"

    def __repr__(self) -> str:
        return f"<Appointment {self.label} ({self.status.value})>"


class AppointmentService(Base):
    """A department service attached to an appointment."""

    __tablename__ = "appointment_services"

    id: Mapped[int] = mapped_column(primary_key=True)
    appointment_id: Mapped[int] = mapped_column(
        ForeignKey("appointments.id"), nullable=False, index=True
    )
    department_service_id: Mapped[int] = mapped_column(
        ForeignKey("department_services.id"), nullable=False, index=True
    )
    final_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=datetime.now
    )

    appointment: Mapped["Appointment"] = relationship(back_populates="services")
    department_service: Mapped["DepartmentService"] = relationship()

    def __repr__(self) -> str:
        return f"<AppointmentService {self.id} cost={self.final_cost}>"
