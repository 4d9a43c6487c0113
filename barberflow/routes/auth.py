from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Response, status

from barberflow.config import Settings, get_settings
from barberflow.dependencies import get_catalog, get_token_issuer, get_token_validator
from barberflow.errors import NotFoundError
from barberflow.logger import get_logger
from barberflow.repositories.base import CatalogRepository
from barberflow.schemas.booking import BookingLinkCreate, BookingLinkOut, BookingSessionOut
from barberflow.security import SESSION_COOKIE_NAME, create_booking_session_token
from barberflow.services.tokens import BookingTokenIssuer, BookingTokenValidator

router = APIRouter(prefix="/auth", tags=["auth"])
_logger = get_logger("api.auth")

MIN_TOKEN_LENGTH = 32


@router.post("/booking-link", response_model=BookingLinkOut, status_code=status.HTTP_201_CREATED)
async def create_booking_link(
    payload: BookingLinkCreate,
    catalog: CatalogRepository = Depends(get_catalog),
    issuer: BookingTokenIssuer = Depends(get_token_issuer),
) -> BookingLinkOut:
    barbershop_id = str(payload.barbershop_id)
    barber_id = str(payload.barber_id) if payload.barber_id else None

    if await catalog.get_barbershop(barbershop_id) is None:
        raise NotFoundError("Barbershop not found")
    if barber_id and await catalog.get_barber(barber_id, barbershop_id=barbershop_id) is None:
        raise NotFoundError("Barber not found in this barbershop")

    link = await issuer.issue(
        barbershop_id=barbershop_id,
        barber_id=barber_id,
        customer_phone=payload.customer_phone,
    )
    return BookingLinkOut(booking_url=link.booking_url, expires_at=link.expires_at)


@router.get("/booking/{token}", response_model=BookingSessionOut)
async def validate_booking_token(
    response: Response,
    token: str = Path(min_length=MIN_TOKEN_LENGTH),
    validator: BookingTokenValidator = Depends(get_token_validator),
    settings: Settings = Depends(get_settings),
) -> BookingSessionOut:
    booking_session = await validator.validate(token)

    session_token = create_booking_session_token(
        booking_session,
        settings.auth_secret_key,
        ttl_seconds=settings.booking_session_ttl_seconds,
    )
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_token,
        max_age=settings.booking_session_ttl_seconds,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="strict",
        path="/",
    )
    _logger.info(
        "booking_session.start",
        "Issued booking session cookie",
        token_id=booking_session.token_id,
        barbershop_id=booking_session.barbershop_id,
        session_ttl_seconds=settings.booking_session_ttl_seconds,
    )
    return BookingSessionOut(
        message="Booking session started",
        barbershop_id=booking_session.barbershop_id,
        barber_id=booking_session.barber_id,
    )
