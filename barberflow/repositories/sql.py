from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from barberflow.errors import InvalidStatusTransitionError, NotFoundError, SlotOccupiedError
from barberflow.logger import get_logger
from barberflow.models import (
    Appointment,
    AppointmentStatus,
    Barber,
    Barbershop,
    BookingToken,
    Customer,
    Service,
)
from barberflow.repositories.base import (
    AppointmentRecord,
    AppointmentRepository,
    BarberRecord,
    BarbershopRecord,
    BookedInterval,
    BookingTokenRecord,
    BookingTokenRepository,
    CatalogRepository,
    CustomerRecord,
    CustomerRepository,
    ServiceRecord,
)
from barberflow.utils import normalize_utc, to_utc

_logger = get_logger("repositories.sql")


def _token_record(row: BookingToken) -> BookingTokenRecord:
    return BookingTokenRecord(
        id=row.id,
        token_hash=row.token_hash,
        barbershop_id=row.barbershop_id,
        barber_id=row.barber_id,
        customer_phone=row.customer_phone,
        expires_at=to_utc(row.expires_at),
        used_at=normalize_utc(row.used_at),
        single_use=bool(row.single_use),
        validation_attempts=int(row.validation_attempts or 0),
        last_attempt_at=normalize_utc(row.last_attempt_at),
        created_at=normalize_utc(row.created_at),
    )


def _appointment_record(row: Appointment) -> AppointmentRecord:
    return AppointmentRecord(
        id=row.id,
        barbershop_id=row.barbershop_id,
        barber_id=row.barber_id,
        service_id=row.service_id,
        customer_id=row.customer_id,
        start_time=to_utc(row.start_time),
        end_time=to_utc(row.end_time),
        status=row.status,
    )


def _customer_record(row: Customer) -> CustomerRecord:
    return CustomerRecord(
        id=row.id, barbershop_id=row.barbershop_id, phone=row.phone, name=row.name
    )


class SqlBookingTokenRepository(BookingTokenRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        token_hash: str,
        barbershop_id: str,
        barber_id: Optional[str],
        customer_phone: str,
        expires_at: datetime,
        single_use: bool = True,
    ) -> BookingTokenRecord:
        row = BookingToken(
            id=str(uuid4()),
            token_hash=token_hash,
            barbershop_id=barbershop_id,
            barber_id=barber_id,
            customer_phone=customer_phone,
            expires_at=to_utc(expires_at),
            single_use=single_use,
            validation_attempts=0,
        )
        self._session.add(row)
        await self._session.commit()
        await self._session.refresh(row)
        return _token_record(row)

    async def find_by_hash(self, token_hash: str) -> Optional[BookingTokenRecord]:
        result = await self._session.execute(
            select(BookingToken)
            .where(BookingToken.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _token_record(row) if row is not None else None

    async def mark_used(self, token_id: str, *, now: datetime) -> bool:
        result = await self._session.execute(
            update(BookingToken)
            .where(BookingToken.id == token_id, BookingToken.used_at.is_(None))
            .values(used_at=to_utc(now))
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount == 1

    async def increment_attempts(self, token_id: str, *, now: datetime) -> None:
        await self._session.execute(
            update(BookingToken)
            .where(BookingToken.id == token_id)
            .values(
                validation_attempts=BookingToken.validation_attempts + 1,
                last_attempt_at=to_utc(now),
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()

    async def delete_expired(self, *, now: datetime) -> int:
        result = await self._session.execute(
            delete(BookingToken)
            .where(BookingToken.expires_at < to_utc(now))
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return int(result.rowcount or 0)


class SqlAppointmentRepository(AppointmentRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_all_on_day(
        self, barber_id: str, day: date, *, tz: tzinfo
    ) -> List[BookedInterval]:
        day_start = datetime.combine(day, time.min, tzinfo=tz)
        next_day_start = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        result = await self._session.execute(
            select(Appointment.start_time, Appointment.end_time)
            .where(
                Appointment.barber_id == barber_id,
                Appointment.start_time >= to_utc(day_start),
                Appointment.start_time < to_utc(next_day_start),
                Appointment.status != AppointmentStatus.CANCELED.value,
            )
            .order_by(Appointment.start_time)
        )
        return [
            BookedInterval(start_time=to_utc(start), end_time=to_utc(end))
            for start, end in result.all()
        ]

    async def is_slot_available(self, barber_id: str, start_time: datetime) -> bool:
        result = await self._session.execute(
            select(Appointment.id)
            .where(
                Appointment.barber_id == barber_id,
                Appointment.start_time == to_utc(start_time),
                Appointment.status != AppointmentStatus.CANCELED.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is None

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
        row = Appointment(
            id=str(uuid4()),
            barber_id=barber_id,
            service_id=service_id,
            customer_id=customer_id,
            barbershop_id=barbershop_id,
            start_time=to_utc(start_time),
            end_time=to_utc(end_time),
            status=AppointmentStatus.SCHEDULED.value,
        )
        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            if not await self.is_slot_available(barber_id, start_time):
                _logger.warning(
                    "appointment.insert_conflict",
                    "Lost race for appointment slot",
                    barber_id=barber_id,
                    start_time=to_utc(start_time).isoformat(),
                )
                raise SlotOccupiedError()
            raise
        await self._session.refresh(row)
        return _appointment_record(row)

    async def find_by_id_and_barbershop(
        self, appointment_id: str, barbershop_id: str
    ) -> Optional[AppointmentRecord]:
        row = await self._get_row(appointment_id, barbershop_id)
        return _appointment_record(row) if row is not None else None

    async def update_status(
        self, appointment_id: str, expected_status: str, status: str
    ) -> AppointmentRecord:
        result = await self._session.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status == expected_status)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        row = await self._session.get(Appointment, appointment_id, populate_existing=True)
        if row is None:
            raise NotFoundError("Appointment not found")
        if result.rowcount != 1:
            _logger.warning(
                "appointment.status_conflict",
                "Appointment status changed concurrently",
                appointment_id=appointment_id,
                expected=expected_status,
                current=row.status,
            )
            raise InvalidStatusTransitionError(row.status, status)
        return _appointment_record(row)

    async def _get_row(self, appointment_id: str, barbershop_id: str) -> Optional[Appointment]:
        result = await self._session.execute(
            select(Appointment)
            .where(
                Appointment.id == appointment_id,
                Appointment.barbershop_id == barbershop_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class SqlCustomerRepository(CustomerRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_phone(self, phone: str, barbershop_id: str) -> Optional[CustomerRecord]:
        result = await self._session.execute(
            select(Customer).where(Customer.phone == phone, Customer.barbershop_id == barbershop_id)
        )
        row = result.scalar_one_or_none()
        return _customer_record(row) if row is not None else None

    async def create(self, phone: str, barbershop_id: str) -> CustomerRecord:
        customer_id = str(uuid4())
        row = Customer(id=customer_id, phone=phone, barbershop_id=barbershop_id)
        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            existing = await self.find_by_phone(phone, barbershop_id)
            if existing is None:
                raise
            return existing
        return CustomerRecord(id=customer_id, barbershop_id=barbershop_id, phone=phone)


class SqlCatalogRepository(CatalogRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_barbershop(self, barbershop_id: str) -> Optional[BarbershopRecord]:
        row = await self._session.get(Barbershop, barbershop_id)
        if row is None:
            return None
        return BarbershopRecord(id=row.id, name=row.name, timezone=row.timezone)

    async def get_barber(
        self, barber_id: str, *, barbershop_id: Optional[str] = None
    ) -> Optional[BarberRecord]:
        query = select(Barber).where(Barber.id == barber_id)
        if barbershop_id is not None:
            query = query.where(Barber.barbershop_id == barbershop_id)
        result = await self._session.execute(query)
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return BarberRecord(id=row.id, name=row.name, barbershop_id=row.barbershop_id)

    async def get_service(self, service_id: str) -> Optional[ServiceRecord]:
        row = await self._session.get(Service, service_id)
        if row is None:
            return None
        return ServiceRecord(
            id=row.id,
            name=row.name,
            duration_min=row.duration_min,
            price=row.price,
            barbershop_id=row.barbershop_id,
        )
