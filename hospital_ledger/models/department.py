"""
Department and department service models.

A department offers priced services that can be attached to
appointments. The Laboratory department is special-cased by
the revenue rules: its revenue is reported in its own bucket.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_ledger.models.base import Base


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )

    services: Mapped[list["DepartmentService"]] = relationship(
        back_populates="department"
    )

    def __repr__(self) -> str:
        return f"<Department {self.name}>"


class DepartmentService(Base):
    __tablename__ = "department_services"

    id: Mapped[int] = mapped_column(primary_key=True)
    department_id: Mapped[int] = mapped_column(
        ForeignKey("departments.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    department: Mapped["Department"] = relationship(back_populates="services")

    def __repr__(self) -> str:
        return f"<DepartmentService {self.name}>"
