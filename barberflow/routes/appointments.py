from __future__ import annotations

from fastapi import APIRouter, Depends, status

from barberflow.dependencies import (
    get_booking_orchestrator,
    get_catalog,
    get_customer_repository,
    get_status_service,
    require_booking_session,
)
from barberflow.errors import NotFoundError
from barberflow.logger import get_logger
from barberflow.repositories.base import CatalogRepository, CustomerRepository
from barberflow.schemas.booking import AppointmentCreate, AppointmentEnvelope, AppointmentOut
from barberflow.security import BookingSession
from barberflow.services.booking import AppointmentStatusService, BookingOrchestrator

router = APIRouter(prefix="/appointments", tags=["scheduling"])
_logger = get_logger("api.appointments")


@router.post("", response_model=AppointmentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    booking_session: BookingSession = Depends(require_booking_session),
    catalog: CatalogRepository = Depends(get_catalog),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> AppointmentEnvelope:
    barbershop_id = booking_session.barbershop_id
    service = await catalog.get_service(str(payload.service_id))
    if service is None or service.barbershop_id != barbershop_id:
        raise NotFoundError("Service not found")
    barber = await catalog.get_barber(str(payload.barber_id), barbershop_id=barbershop_id)
    if barber is None:
        raise NotFoundError("Barber not found")

    appointment = await orchestrator.book(
        barber_id=barber.id,
        service_id=service.id,
        barbershop_id=barbershop_id,
        customer_phone=booking_session.customer_phone,
        start_time=payload.start_time,
        duration_min=service.duration_min,
    )
    _logger.info(
        "appointment.created",
        "Created appointment from booking session",
        appointment_id=appointment.id,
        token_id=booking_session.token_id,
    )
    return AppointmentEnvelope(
        appointment=AppointmentOut.model_validate(appointment),
        message="Appointment created successfully.",
    )


@router.post("/{appointment_id}/cancel", response_model=AppointmentEnvelope)
async def cancel_appointment(
    appointment_id: str,
    booking_session: BookingSession = Depends(require_booking_session),
    customers: CustomerRepository = Depends(get_customer_repository),
    status_service: AppointmentStatusService = Depends(get_status_service),
) -> AppointmentEnvelope:
    customer = await customers.find_by_phone(
        booking_session.customer_phone, booking_session.barbershop_id
    )
    if customer is None:
        raise NotFoundError("Appointment not found")
    appointment = await status_service.cancel(
        appointment_id,
        booking_session.barbershop_id,
        customer_id=customer.id,
    )
    return AppointmentEnvelope(
        appointment=AppointmentOut.model_validate(appointment),
        message="Appointment canceled.",
    )
