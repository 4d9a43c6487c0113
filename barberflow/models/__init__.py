from barberflow.models.appointment import Appointment, AppointmentStatus
from barberflow.models.barbershop import Barber, Barbershop, Service
from barberflow.models.base import Base
from barberflow.models.booking_token import BookingToken
from barberflow.models.customer import Customer

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Barber",
    "Barbershop",
    "Base",
    "BookingToken",
    "Customer",
    "Service",
]
