from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from barberflow.models.base import Base, TimestampMixin


class Barbershop(TimestampMixin, Base):
    __tablename__ = "barbershops"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    slug: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(32), unique=True)
    timezone: Mapped[str] = mapped_column(String(64), default="America/Sao_Paulo")


class Barber(TimestampMixin, Base):
    __tablename__ = "barbers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    barbershop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("barbershops.id", ondelete="RESTRICT"), index=True
    )


class Service(TimestampMixin, Base):
    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    duration_min: Mapped[int] = mapped_column(Integer)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    barbershop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("barbershops.id", ondelete="RESTRICT"), index=True
    )
