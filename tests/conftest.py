"""Shared test fixtures and helpers."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./data/test.db")
os.environ["LOG_FILE"] = ""
os.environ["LOG_DB_QUERIES"] = "false"

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from barberflow.dependencies import get_db_session
from barberflow.models import Barber, Barbershop, Base, Service
from barberflow.repositories.base import BookedInterval, BookingTokenRecord

BUSINESS_TZ = ZoneInfo("America/Sao_Paulo")

SHOP_ID = "11111111-1111-4111-8111-111111111111"
OTHER_SHOP_ID = "22222222-2222-4222-8222-222222222222"
BARBER_ID = "33333333-3333-4333-8333-333333333333"
OTHER_BARBER_ID = "44444444-4444-4444-8444-444444444444"
SERVICE_ID = "55555555-5555-4555-8555-555555555555"
CUSTOMER_PHONE = "+5511987654321"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


def business_time(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=BUSINESS_TZ)


def future_day(days: int = 2) -> date:
    return datetime.now(BUSINESS_TZ).date() + timedelta(days=days)


def make_token_record(
    *,
    validation_attempts: int = 0,
    last_attempt_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
    used_at: Optional[datetime] = None,
    single_use: bool = True,
    now: Optional[datetime] = None,
) -> BookingTokenRecord:
    """Helper to create a BookingTokenRecord with sensible defaults."""
    reference = now or datetime(2030, 3, 14, 12, 0, tzinfo=timezone.utc)
    return BookingTokenRecord(
        id="token-1",
        token_hash="a" * 64,
        barbershop_id=SHOP_ID,
        barber_id=None,
        customer_phone=CUSTOMER_PHONE,
        expires_at=expires_at or reference + timedelta(minutes=10),
        used_at=used_at,
        single_use=single_use,
        validation_attempts=validation_attempts,
        last_attempt_at=last_attempt_at,
    )


def make_interval(start: datetime, minutes: int = 30) -> BookedInterval:
    return BookedInterval(start_time=start, end_time=start + timedelta(minutes=minutes))


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'barberflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def db_session(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
async def seeded(sessionmaker):
    async with sessionmaker() as session:
        session.add_all(
            [
                Barbershop(
                    id=SHOP_ID,
                    name="Navalha de Ouro",
                    slug="navalha-de-ouro",
                    phone="+5511900000001",
                    timezone="America/Sao_Paulo",
                ),
                Barbershop(
                    id=OTHER_SHOP_ID,
                    name="Corte Fino",
                    slug="corte-fino",
                    phone="+5511900000002",
                    timezone="America/Sao_Paulo",
                ),
            ]
        )
        await session.flush()
        session.add_all(
            [
                Barber(id=BARBER_ID, name="Joao", barbershop_id=SHOP_ID),
                Barber(id=OTHER_BARBER_ID, name="Pedro", barbershop_id=OTHER_SHOP_ID),
                Service(
                    id=SERVICE_ID,
                    name="Corte",
                    duration_min=30,
                    price=Decimal("45.00"),
                    barbershop_id=SHOP_ID,
                ),
            ]
        )
        await session.commit()
    return {
        "shop_id": SHOP_ID,
        "other_shop_id": OTHER_SHOP_ID,
        "barber_id": BARBER_ID,
        "other_barber_id": OTHER_BARBER_ID,
        "service_id": SERVICE_ID,
    }


@pytest.fixture
async def client(sessionmaker, seeded):
    from barberflow.main import app

    async def _override_db_session():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db_session] = _override_db_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()
