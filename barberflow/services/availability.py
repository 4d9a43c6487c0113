from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List

from barberflow.logger import get_logger
from barberflow.repositories.base import AppointmentRepository
from barberflow.utils import Clock, to_utc, utcnow

BUSINESS_START_HOUR = 9
BUSINESS_END_HOUR = 18
SLOT_DURATION = timedelta(minutes=30)

_logger = get_logger("services.availability")


@dataclass(frozen=True)
class AvailableSlot:
    start_time: datetime
    end_time: datetime


def generate_day_slots(day: date, tz: tzinfo) -> List[AvailableSlot]:
    """Fixed 09:00-18:00 grid of 30 minute slots for `day` in `tz`."""
    slots: List[AvailableSlot] = []
    start = datetime.combine(day, time(BUSINESS_START_HOUR), tzinfo=tz)
    close = datetime.combine(day, time(BUSINESS_END_HOUR), tzinfo=tz)
    while start < close:
        slots.append(AvailableSlot(start_time=start, end_time=start + SLOT_DURATION))
        start = start + SLOT_DURATION
    return slots


class AvailabilityCalculator:
    # TODO: build the grid from BarberSchedule/BarberBreak once working hours are stored per barber.
    def __init__(
        self,
        appointments: AppointmentRepository,
        *,
        tz: tzinfo,
        clock: Clock = utcnow,
    ) -> None:
        self._appointments = appointments
        self._tz = tz
        self._clock = clock

    async def availability(self, barber_id: str, day: date) -> List[AvailableSlot]:
        now = self._clock()
        today = now.astimezone(self._tz).date()
        if day < today:
            _logger.debug(
                "availability.past_date",
                "Requested date is in the past",
                barber_id=barber_id,
                date=day.isoformat(),
            )
            return []

        booked = await self._appointments.find_all_on_day(barber_id, day, tz=self._tz)
        booked_starts = {to_utc(item.start_time) for item in booked}

        slots = [
            slot
            for slot in generate_day_slots(day, self._tz)
            if slot.start_time > now and to_utc(slot.start_time) not in booked_starts
        ]
        _logger.info(
            "availability.computed",
            "Computed available slots",
            barber_id=barber_id,
            date=day.isoformat(),
            booked=len(booked_starts),
            available=len(slots),
        )
        return slots
