from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from barberflow.models.base import Base, TimestampMixin
from barberflow.repositories.base import AppointmentStatus


_ACTIVE_ONLY = text("status != 'canceled'")


class Appointment(TimestampMixin, Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # One live appointment per barber and start instant; canceled rows free the slot.
        Index(
            "ux_appointments_barber_slot",
            "barber_id",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("ix_appointments_shop_status", "barbershop_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    barbershop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("barbershops.id", ondelete="RESTRICT")
    )
    barber_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("barbers.id", ondelete="RESTRICT")
    )
    service_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("services.id", ondelete="RESTRICT")
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="RESTRICT"), index=True
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(16), default=AppointmentStatus.SCHEDULED.value)
