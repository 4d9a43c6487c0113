from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from barberflow.models.base import Base, TimestampMixin


class Customer(TimestampMixin, Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("barbershop_id", "phone", name="uq_customers_shop_phone"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    barbershop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("barbershops.id", ondelete="RESTRICT"), index=True
    )
    phone: Mapped[str] = mapped_column(String(32), index=True)
    name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
