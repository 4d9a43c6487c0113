"""Storage ports consumed by the booking services.

Services depend only on these interfaces and plain record types; the
SQLAlchemy adapters in `barberflow.repositories.sql` are wired in at
composition time.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import List, Optional


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class BookingTokenRecord:
    id: str
    token_hash: str
    barbershop_id: str
    barber_id: Optional[str]
    customer_phone: str
    expires_at: datetime
    used_at: Optional[datetime]
    single_use: bool
    validation_attempts: int
    last_attempt_at: Optional[datetime]
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class BookedInterval:
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class AppointmentRecord:
    id: str
    barbershop_id: str
    barber_id: str
    service_id: str
    customer_id: str
    start_time: datetime
    end_time: datetime
    status: str


@dataclass(frozen=True)
class CustomerRecord:
    id: str
    barbershop_id: str
    phone: str
    name: Optional[str] = None


@dataclass(frozen=True)
class BarbershopRecord:
    id: str
    name: str
    timezone: str


@dataclass(frozen=True)
class BarberRecord:
    id: str
    name: str
    barbershop_id: str


@dataclass(frozen=True)
class ServiceRecord:
    id: str
    name: str
    duration_min: int
    price: Decimal
    barbershop_id: str


class BookingTokenRepository(ABC):
    @abstractmethod
    async def create(
        self,
        *,
        token_hash: str,
        barbershop_id: str,
        barber_id: Optional[str],
        customer_phone: str,
        expires_at: datetime,
        single_use: bool = True,
    ) -> BookingTokenRecord: ...

    @abstractmethod
    async def find_by_hash(self, token_hash: str) -> Optional[BookingTokenRecord]: ...

    @abstractmethod
    async def mark_used(self, token_id: str, *, now: datetime) -> bool:
        """Stamp `used_at` only if it is still empty; True when this call won."""

    @abstractmethod
    async def increment_attempts(self, token_id: str, *, now: datetime) -> None: ...

    @abstractmethod
    async def delete_expired(self, *, now: datetime) -> int: ...


class AppointmentRepository(ABC):
    @abstractmethod
    async def find_all_on_day(
        self, barber_id: str, day: date, *, tz: tzinfo
    ) -> List[BookedInterval]:
        """Non-canceled appointments starting on `day` as seen in `tz`."""

    @abstractmethod
    async def is_slot_available(self, barber_id: str, start_time: datetime) -> bool: ...

    @abstractmethod
    async def create(
        self,
        *,
        barber_id: str,
        service_id: str,
        customer_id: str,
        barbershop_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> AppointmentRecord:
        """Persist a scheduled appointment; raises SlotOccupiedError on a taken slot."""

    @abstractmethod
    async def find_by_id_and_barbershop(
        self, appointment_id: str, barbershop_id: str
    ) -> Optional[AppointmentRecord]: ...

    @abstractmethod
    async def update_status(
        self, appointment_id: str, expected_status: str, status: str
    ) -> AppointmentRecord:
        """Move from `expected_status` to `status`; raises InvalidStatusTransitionError
        when the row no longer holds `expected_status`."""


class CustomerRepository(ABC):
    @abstractmethod
    async def find_by_phone(self, phone: str, barbershop_id: str) -> Optional[CustomerRecord]: ...

    @abstractmethod
    async def create(self, phone: str, barbershop_id: str) -> CustomerRecord: ...


class CatalogRepository(ABC):
    @abstractmethod
    async def get_barbershop(self, barbershop_id: str) -> Optional[BarbershopRecord]: ...

    @abstractmethod
    async def get_barber(
        self, barber_id: str, *, barbershop_id: Optional[str] = None
    ) -> Optional[BarberRecord]: ...

    @abstractmethod
    async def get_service(self, service_id: str) -> Optional[ServiceRecord]: ...
