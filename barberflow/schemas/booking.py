from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookingLinkCreate(_CamelModel):
    barbershop_id: UUID
    barber_id: Optional[UUID] = None
    customer_phone: str = Field(min_length=10, max_length=15)


class BookingLinkOut(_CamelModel):
    booking_url: str
    expires_at: datetime


class BookingSessionOut(_CamelModel):
    message: str
    barbershop_id: str
    barber_id: Optional[str] = None


class SlotOut(_CamelModel):
    start_time: datetime
    end_time: datetime


class AvailabilityOut(_CamelModel):
    slots: List[SlotOut]


class AppointmentCreate(_CamelModel):
    barber_id: UUID
    service_id: UUID
    start_time: AwareDatetime


class AppointmentOut(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    start_time: datetime
    end_time: datetime
    status: str
    barber_id: str
    service_id: str
    barbershop_id: str


class AppointmentEnvelope(_CamelModel):
    appointment: AppointmentOut
    message: Optional[str] = None
