from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from barberflow.errors import InvalidStatusTransitionError, NotFoundError, SlotOccupiedError
from barberflow.logger import get_logger
from barberflow.metrics import record_booking
from barberflow.repositories.base import (
    AppointmentRecord,
    AppointmentRepository,
    AppointmentStatus,
    CustomerRepository,
)
from barberflow.utils import to_utc

_logger = get_logger("services.booking")

VALID_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    AppointmentStatus.SCHEDULED.value: frozenset(
        {
            AppointmentStatus.COMPLETED.value,
            AppointmentStatus.CANCELED.value,
            AppointmentStatus.NO_SHOW.value,
        }
    ),
    AppointmentStatus.COMPLETED.value: frozenset(),
    AppointmentStatus.CANCELED.value: frozenset(),
    AppointmentStatus.NO_SHOW.value: frozenset(),
}


def check_transition(current: str, target: str) -> None:
    if target not in VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransitionError(current, target)


class BookingOrchestrator:
    def __init__(
        self,
        appointments: AppointmentRepository,
        customers: CustomerRepository,
    ) -> None:
        self._appointments = appointments
        self._customers = customers

    async def book(
        self,
        *,
        barber_id: str,
        service_id: str,
        barbershop_id: str,
        customer_phone: str,
        start_time: datetime,
        duration_min: int,
    ) -> AppointmentRecord:
        """Commit an appointment for `start_time`.

        The availability check here is an early exit; the storage uniqueness
        rule on (barber, start time) decides races and surfaces as
        SlotOccupiedError as well.
        """
        start = to_utc(start_time)
        async with _logger.operation(
            "appointment.book",
            "Booking appointment",
            barber_id=barber_id,
            service_id=service_id,
            barbershop_id=barbershop_id,
            start_time=start.isoformat(),
            customer_phone=customer_phone,
        ) as op:
            if not await self._appointments.is_slot_available(barber_id, start):
                record_booking(result="slot_occupied")
                raise SlotOccupiedError()
            op.step("slot.check", "Slot is free")

            customer = await self._customers.find_by_phone(customer_phone, barbershop_id)
            if customer is None:
                customer = await self._customers.create(customer_phone, barbershop_id)
                op.step("customer.create", "Created customer", customer_id=customer.id)

            try:
                appointment = await self._appointments.create(
                    barber_id=barber_id,
                    service_id=service_id,
                    customer_id=customer.id,
                    barbershop_id=barbershop_id,
                    start_time=start,
                    end_time=start + timedelta(minutes=duration_min),
                )
            except SlotOccupiedError:
                record_booking(result="slot_occupied")
                raise
            op.step("appointment.create", "Persisted appointment", appointment_id=appointment.id)
            record_booking(result="created")
            return appointment


class AppointmentStatusService:
    def __init__(self, appointments: AppointmentRepository) -> None:
        self._appointments = appointments

    async def transition(
        self,
        appointment_id: str,
        barbershop_id: str,
        target: str,
        *,
        customer_id: Optional[str] = None,
    ) -> AppointmentRecord:
        appointment = await self._appointments.find_by_id_and_barbershop(
            appointment_id, barbershop_id
        )
        if appointment is None or (
            customer_id is not None and appointment.customer_id != customer_id
        ):
            raise NotFoundError("Appointment not found")
        check_transition(appointment.status, target)
        updated = await self._appointments.update_status(
            appointment_id, appointment.status, target
        )
        _logger.info(
            "appointment.status",
            "Updated appointment status",
            appointment_id=appointment_id,
            previous=appointment.status,
            status=target,
        )
        return updated

    async def cancel(
        self,
        appointment_id: str,
        barbershop_id: str,
        *,
        customer_id: Optional[str] = None,
    ) -> AppointmentRecord:
        return await self.transition(
            appointment_id,
            barbershop_id,
            AppointmentStatus.CANCELED.value,
            customer_id=customer_id,
        )
