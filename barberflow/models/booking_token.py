from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from barberflow.models.base import Base, TimestampMixin


class BookingToken(TimestampMixin, Base):
    __tablename__ = "booking_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    barbershop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("barbershops.id", ondelete="RESTRICT"), index=True
    )
    barber_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("barbers.id", ondelete="SET NULL"), nullable=True
    )
    customer_phone: Mapped[str] = mapped_column(String(32))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    single_use: Mapped[bool] = mapped_column(Boolean, default=True)
    validation_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
