from __future__ import annotations

from functools import lru_cache
from time import perf_counter
from typing import Any, AsyncIterator, Dict, Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from barberflow.config import Settings, get_settings
from barberflow.logger import get_logger
from barberflow.repositories.sql import (
    SqlAppointmentRepository,
    SqlBookingTokenRepository,
    SqlCatalogRepository,
    SqlCustomerRepository,
)
from barberflow.security import (
    SESSION_COOKIE_NAME,
    BookingSession,
    decode_booking_session_token,
)
from barberflow.services.availability import AvailabilityCalculator
from barberflow.services.booking import AppointmentStatusService, BookingOrchestrator
from barberflow.services.tokens import BookingTokenIssuer, BookingTokenValidator

_DB_LOGGER = get_logger("db")
_DB_SESSION_LOGGER = get_logger("db.session")
_SESSION_LOGGER = get_logger("auth.session")
_SLOW_QUERY_MS = 200


def _shorten(value: str, max_length: int) -> str:
    if max_length <= 0 or len(value) <= max_length:
        return value
    return value[: max(max_length - 3, 0)] + "..."


class _QueryLogger:
    """Engine event listeners that time each statement per connection."""

    _STARTS_KEY = "barberflow_query_starts"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def install(self, engine: AsyncEngine) -> None:
        sync_engine = engine.sync_engine
        event.listen(sync_engine, "before_cursor_execute", self.before_execute)
        event.listen(sync_engine, "after_cursor_execute", self.after_execute)
        event.listen(sync_engine, "handle_error", self.on_error)

    def _sql(self, statement: Any) -> str:
        return _shorten(" ".join(str(statement or "").split()), self._settings.log_sql_max_length)

    def _elapsed_ms(self, conn: Any) -> Optional[float]:
        starts = conn.info.get(self._STARTS_KEY)
        if not starts:
            return None
        return round((perf_counter() - starts.pop()) * 1000, 1)

    def before_execute(self, conn: Any, cursor: Any, statement: Any, *args: Any) -> None:
        conn.info.setdefault(self._STARTS_KEY, []).append(perf_counter())

    def after_execute(
        self, conn: Any, cursor: Any, statement: Any, parameters: Any, *args: Any
    ) -> None:
        duration_ms = self._elapsed_ms(conn) or 0.0
        if not self._settings.log_db_queries:
            return
        sql = self._sql(statement)
        fields: Dict[str, Any] = {
            "verb": sql.split(" ", 1)[0].upper(),
            "duration_ms": duration_ms,
            "rowcount": getattr(cursor, "rowcount", None),
            "sql": sql,
        }
        if self._settings.log_db_query_params:
            fields["params"] = _shorten(repr(parameters), self._settings.log_sql_max_length)
        _DB_LOGGER.debug("query.execute", "Executed SQL statement", **fields)
        if duration_ms >= _SLOW_QUERY_MS:
            _DB_LOGGER.warning("query.slow", "Slow SQL statement", duration_ms=duration_ms, sql=sql)

    def on_error(self, exception_context: Any) -> None:
        duration_ms = None
        if exception_context.connection is not None:
            duration_ms = self._elapsed_ms(exception_context.connection)
        error = exception_context.original_exception
        # Constraint violations are routine here (slot races, customer upserts).
        _DB_LOGGER.warning(
            "query.error",
            "SQL execution failed",
            error_type=type(error).__name__,
            error=str(error),
            duration_ms=duration_ms,
            sql=self._sql(exception_context.statement),
        )


@lru_cache
def get_engine(database_url: str) -> AsyncEngine:
    settings = get_settings()
    engine = create_async_engine(database_url, pool_pre_ping=True)

    if database_url.startswith("sqlite"):

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    _QueryLogger(settings).install(engine)
    return engine


@lru_cache
def get_sessionmaker(database_url: str) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=get_engine(database_url), expire_on_commit=False)


async def get_db_session(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[AsyncSession]:
    """One `AsyncSession` per request; adapters commit their own writes."""
    session_id = uuid4().hex[:12]
    start = perf_counter()
    async with get_sessionmaker(settings.database_url)() as session:
        try:
            yield session
        except Exception as exc:
            if session.in_transaction():
                await session.rollback()
                _DB_SESSION_LOGGER.warning(
                    "session.rollback",
                    "Rolled back DB transaction after error",
                    db_session_id=session_id,
                    error_type=type(exc).__name__,
                )
            raise
        finally:
            _DB_SESSION_LOGGER.debug(
                "session.close",
                "Closed DB session",
                db_session_id=session_id,
                duration_ms=round((perf_counter() - start) * 1000, 1),
            )


def get_catalog(session: AsyncSession = Depends(get_db_session)) -> SqlCatalogRepository:
    return SqlCatalogRepository(session)


def get_token_issuer(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> BookingTokenIssuer:
    return BookingTokenIssuer(
        SqlBookingTokenRepository(session),
        base_url=settings.frontend_url,
        default_expiry_minutes=settings.booking_token_ttl_minutes,
    )


def get_token_validator(session: AsyncSession = Depends(get_db_session)) -> BookingTokenValidator:
    return BookingTokenValidator(SqlBookingTokenRepository(session))


def get_availability_calculator(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> AvailabilityCalculator:
    return AvailabilityCalculator(SqlAppointmentRepository(session), tz=settings.tzinfo)


def get_booking_orchestrator(
    session: AsyncSession = Depends(get_db_session),
) -> BookingOrchestrator:
    return BookingOrchestrator(SqlAppointmentRepository(session), SqlCustomerRepository(session))


def get_customer_repository(
    session: AsyncSession = Depends(get_db_session),
) -> SqlCustomerRepository:
    return SqlCustomerRepository(session)


def get_status_service(session: AsyncSession = Depends(get_db_session)) -> AppointmentStatusService:
    return AppointmentStatusService(SqlAppointmentRepository(session))


def require_booking_session(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> BookingSession:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    booking_session = decode_booking_session_token(token or "", settings.auth_secret_key)
    if booking_session is None:
        _SESSION_LOGGER.warning(
            "session.reject",
            "Rejected request without a valid booking session",
            path=request.url.path,
            cookie_present=bool(token),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired booking session",
        )
    return booking_session
