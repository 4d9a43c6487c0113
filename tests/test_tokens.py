"""Tests for issuing, validating and reaping booking tokens against SQLite."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from barberflow.errors import (
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenRateLimitedError,
)
from barberflow.repositories.sql import SqlBookingTokenRepository
from barberflow.security import BookingSession, generate_token, hash_token
from barberflow.services.tokens import (
    MAX_VALIDATION_ATTEMPTS,
    BookingTokenIssuer,
    BookingTokenValidator,
    reap_expired_tokens,
)
from tests.conftest import BARBER_ID, CUSTOMER_PHONE, SHOP_ID, FrozenClock

START = datetime(2030, 3, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def tokens(db_session, seeded):
    return SqlBookingTokenRepository(db_session)


@pytest.fixture
def issuer(tokens, clock):
    return BookingTokenIssuer(tokens, base_url="https://book.example.com/", clock=clock)


@pytest.fixture
def validator(tokens, clock):
    return BookingTokenValidator(tokens, clock=clock)


def plaintext_from(url: str) -> str:
    return url.rsplit("/", 1)[1]


class TestBookingTokenIssuer:
    async def test_issue_stores_only_the_hash(self, issuer, tokens):
        link = await issuer.issue(barbershop_id=SHOP_ID, customer_phone=CUSTOMER_PHONE)

        assert link.booking_url.startswith("https://book.example.com/booking/")
        plaintext = plaintext_from(link.booking_url)
        assert len(plaintext) == 43

        stored = await tokens.find_by_hash(hash_token(plaintext))
        assert stored is not None
        assert stored.id == link.token_id
        assert stored.token_hash != plaintext
        assert stored.validation_attempts == 0
        assert stored.used_at is None
        assert stored.single_use

    async def test_default_expiry_is_fifteen_minutes(self, issuer, tokens):
        link = await issuer.issue(barbershop_id=SHOP_ID, customer_phone=CUSTOMER_PHONE)
        assert link.expires_at == START + timedelta(minutes=15)

        stored = await tokens.find_by_hash(hash_token(plaintext_from(link.booking_url)))
        assert stored.expires_at == START + timedelta(minutes=15)

    async def test_custom_expiry_and_barber(self, issuer, tokens):
        link = await issuer.issue(
            barbershop_id=SHOP_ID,
            customer_phone=CUSTOMER_PHONE,
            barber_id=BARBER_ID,
            expiry_minutes=60,
        )
        stored = await tokens.find_by_hash(hash_token(plaintext_from(link.booking_url)))
        assert stored.barber_id == BARBER_ID
        assert stored.expires_at == START + timedelta(minutes=60)


class TestBookingTokenValidator:
    async def test_valid_token_starts_session(self, issuer, validator, tokens):
        link = await issuer.issue(
            barbershop_id=SHOP_ID, customer_phone=CUSTOMER_PHONE, barber_id=BARBER_ID
        )
        plaintext = plaintext_from(link.booking_url)

        session = await validator.validate(plaintext)

        assert session.barbershop_id == SHOP_ID
        assert session.barber_id == BARBER_ID
        assert session.customer_phone == CUSTOMER_PHONE
        assert session.token_id == link.token_id

        stored = await tokens.find_by_hash(hash_token(plaintext))
        assert stored.used_at == START
        assert stored.validation_attempts == 1
        assert stored.last_attempt_at == START

    async def test_second_use_is_rejected(self, issuer, validator):
        link = await issuer.issue(barbershop_id=SHOP_ID, customer_phone=CUSTOMER_PHONE)
        plaintext = plaintext_from(link.booking_url)

        await validator.validate(plaintext)
        with pytest.raises(TokenAlreadyUsedError):
            await validator.validate(plaintext)

    async def test_unknown_token(self, validator):
        plaintext, _ = generate_token()
        with pytest.raises(TokenNotFoundError):
            await validator.validate(plaintext)

    async def test_expired_token(self, issuer, validator, clock, tokens):
        link = await issuer.issue(barbershop_id=SHOP_ID, customer_phone=CUSTOMER_PHONE)
        plaintext = plaintext_from(link.booking_url)
        clock.advance(minutes=16)

        with pytest.raises(TokenExpiredError):
            await validator.validate(plaintext)

        stored = await tokens.find_by_hash(hash_token(plaintext))
        assert stored.used_at is None
        assert stored.validation_attempts == 1

    async def test_failed_attempts_trigger_rate_limit(self, issuer, validator, clock):
        link = await issuer.issue(barbershop_id=SHOP_ID, customer_phone=CUSTOMER_PHONE)
        plaintext = plaintext_from(link.booking_url)
        clock.advance(minutes=20)

        for _ in range(MAX_VALIDATION_ATTEMPTS):
            with pytest.raises(TokenExpiredError):
                await validator.validate(plaintext)
            clock.advance(seconds=1)

        with pytest.raises(TokenRateLimitedError):
            await validator.validate(plaintext)

        clock.advance(seconds=61)
        with pytest.raises(TokenExpiredError):
            await validator.validate(plaintext)


class TestBookingTokenRepository:
    async def test_mark_used_only_wins_once(self, tokens):
        _, token_hash = generate_token()
        record = await tokens.create(
            token_hash=token_hash,
            barbershop_id=SHOP_ID,
            barber_id=None,
            customer_phone=CUSTOMER_PHONE,
            expires_at=START + timedelta(minutes=15),
        )

        assert await tokens.mark_used(record.id, now=START) is True
        assert await tokens.mark_used(record.id, now=START + timedelta(seconds=1)) is False

        stored = await tokens.find_by_hash(token_hash)
        assert stored.used_at == START

    async def test_increment_attempts_accumulates(self, tokens):
        _, token_hash = generate_token()
        record = await tokens.create(
            token_hash=token_hash,
            barbershop_id=SHOP_ID,
            barber_id=None,
            customer_phone=CUSTOMER_PHONE,
            expires_at=START + timedelta(minutes=15),
        )
        for offset in range(3):
            await tokens.increment_attempts(record.id, now=START + timedelta(seconds=offset))

        stored = await tokens.find_by_hash(token_hash)
        assert stored.validation_attempts == 3
        assert stored.last_attempt_at == START + timedelta(seconds=2)


class TestReapExpiredTokens:
    async def test_deletes_only_expired(self, tokens, clock):
        for minutes in (-30, -1, 10):
            _, token_hash = generate_token()
            await tokens.create(
                token_hash=token_hash,
                barbershop_id=SHOP_ID,
                barber_id=None,
                customer_phone=CUSTOMER_PHONE,
                expires_at=START + timedelta(minutes=minutes),
            )

        assert await reap_expired_tokens(tokens, clock=clock) == 2
        assert await reap_expired_tokens(tokens, clock=clock) == 0


class TestConcurrentValidation:
    async def test_only_one_validator_consumes_a_token(self, sessionmaker, issuer, clock):
        link = await issuer.issue(barbershop_id=SHOP_ID, customer_phone=CUSTOMER_PHONE)
        plaintext = plaintext_from(link.booking_url)

        async def validate_in_own_session():
            async with sessionmaker() as session:
                validator = BookingTokenValidator(SqlBookingTokenRepository(session), clock=clock)
                return await validator.validate(plaintext)

        results = await asyncio.gather(
            *(validate_in_own_session() for _ in range(4)), return_exceptions=True
        )

        winners = [item for item in results if isinstance(item, BookingSession)]
        losers = [item for item in results if isinstance(item, TokenAlreadyUsedError)]
        assert len(winners) == 1
        assert len(losers) == 3
        assert winners[0].token_id == link.token_id
