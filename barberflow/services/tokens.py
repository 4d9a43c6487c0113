from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from barberflow.errors import TOKEN_ERRORS_BY_REASON, TokenAlreadyUsedError
from barberflow.logger import get_logger
from barberflow.metrics import record_token_validation
from barberflow.repositories.base import BookingTokenRecord, BookingTokenRepository
from barberflow.security import (
    TOKEN_EXPIRY_MINUTES,
    BookingSession,
    calculate_expiry,
    generate_token,
    hash_token,
    token_fingerprint,
)
from barberflow.utils import Clock, normalize_utc, utcnow

MAX_VALIDATION_ATTEMPTS = 5
RATE_LIMIT_WINDOW = timedelta(seconds=60)

_logger = get_logger("services.tokens")


@dataclass(frozen=True)
class TokenValidationResult:
    valid: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class IssuedBookingLink:
    booking_url: str
    expires_at: datetime
    token_id: str


def evaluate_token_state(
    record: Optional[BookingTokenRecord], *, now: datetime
) -> TokenValidationResult:
    """Decide whether a token record may start a booking session.

    Checks run in a fixed order and the first match wins: missing record,
    rate limit, expiry, single-use consumption.
    """
    if record is None:
        return TokenValidationResult(False, "not_found")

    if record.validation_attempts >= MAX_VALIDATION_ATTEMPTS:
        last_attempt_at = normalize_utc(record.last_attempt_at)
        # A missing timestamp counts as infinitely old, so the window has elapsed.
        if last_attempt_at is not None and now - last_attempt_at < RATE_LIMIT_WINDOW:
            return TokenValidationResult(False, "rate_limited")

    expires_at = normalize_utc(record.expires_at)
    if expires_at is not None and now > expires_at:
        return TokenValidationResult(False, "expired")

    if record.single_use and record.used_at is not None:
        return TokenValidationResult(False, "already_used")

    return TokenValidationResult(True)


class BookingTokenIssuer:
    """Mints single-use booking links.

    Callers check that the barbershop exists and that a pinned barber belongs
    to it before calling `issue`.
    """

    def __init__(
        self,
        tokens: BookingTokenRepository,
        *,
        base_url: str,
        default_expiry_minutes: int = TOKEN_EXPIRY_MINUTES,
        clock: Clock = utcnow,
    ) -> None:
        self._tokens = tokens
        self._base_url = base_url.rstrip("/")
        self._default_expiry_minutes = default_expiry_minutes
        self._clock = clock

    async def issue(
        self,
        *,
        barbershop_id: str,
        customer_phone: str,
        barber_id: Optional[str] = None,
        expiry_minutes: Optional[int] = None,
    ) -> IssuedBookingLink:
        minutes = expiry_minutes if expiry_minutes is not None else self._default_expiry_minutes
        async with _logger.operation(
            "booking_token.issue",
            "Issuing booking link",
            barbershop_id=barbershop_id,
            barber_id=barber_id or "-",
            expiry_minutes=minutes,
            customer_phone=customer_phone,
        ) as op:
            plaintext, token_hash = generate_token()
            expires_at = calculate_expiry(minutes, clock=self._clock)
            record = await self._tokens.create(
                token_hash=token_hash,
                barbershop_id=barbershop_id,
                barber_id=barber_id,
                customer_phone=customer_phone,
                expires_at=expires_at,
                single_use=True,
            )
            op.step(
                "token.store",
                "Stored booking token hash",
                token_id=record.id,
                fingerprint=token_fingerprint(token_hash),
                expires_at=expires_at.isoformat(),
            )
            return IssuedBookingLink(
                booking_url=f"{self._base_url}/booking/{plaintext}",
                expires_at=expires_at,
                token_id=record.id,
            )


class BookingTokenValidator:
    def __init__(self, tokens: BookingTokenRepository, *, clock: Clock = utcnow) -> None:
        self._tokens = tokens
        self._clock = clock

    async def validate(self, plaintext: str) -> BookingSession:
        """Exchange a presented token for a booking session.

        Raises one of the token errors from `barberflow.errors`. The attempt
        counter is bumped for every lookup that finds a row, whatever the
        outcome. Consumption is a conditional write, so of two validators
        racing the same single-use token exactly one succeeds.
        """
        token_hash = hash_token(plaintext)
        async with _logger.operation(
            "booking_token.validate",
            "Validating booking token",
            fingerprint=token_fingerprint(token_hash),
        ) as op:
            now = self._clock()
            record = await self._tokens.find_by_hash(token_hash)
            if record is None:
                record_token_validation(result="not_found")
                raise TOKEN_ERRORS_BY_REASON["not_found"]()

            await self._tokens.increment_attempts(record.id, now=now)
            op.step(
                "attempts.increment",
                "Counted validation attempt",
                token_id=record.id,
                attempts=record.validation_attempts + 1,
            )

            result = evaluate_token_state(record, now=now)
            if not result.valid:
                reason = result.reason or "not_found"
                record_token_validation(result=reason)
                raise TOKEN_ERRORS_BY_REASON[reason]()

            if record.single_use:
                consumed = await self._tokens.mark_used(record.id, now=now)
                if not consumed:
                    record_token_validation(result="already_used")
                    raise TokenAlreadyUsedError()
                op.step("token.consume", "Marked booking token as used", token_id=record.id)

            record_token_validation(result="ok")
            return BookingSession(
                barbershop_id=record.barbershop_id,
                barber_id=record.barber_id,
                customer_phone=record.customer_phone,
                token_id=record.id,
            )


async def reap_expired_tokens(tokens: BookingTokenRepository, *, clock: Clock = utcnow) -> int:
    now = clock()
    removed = await tokens.delete_expired(now=now)
    _logger.info(
        "booking_token.reap",
        "Deleted expired booking tokens",
        removed=removed,
        cutoff=now.isoformat(),
    )
    return removed
