from __future__ import annotations

from contextlib import asynccontextmanager
from time import perf_counter
from typing import AsyncIterator, Awaitable, Callable, List
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from barberflow.config import DEFAULT_AUTH_SECRET_KEY, Settings, get_settings
from barberflow.dependencies import get_engine
from barberflow.errors import BookingError
from barberflow.logger import configure_logging, get_logger
from barberflow.metrics import observe_http_request
from barberflow.routes import appointments, auth, availability, system

settings = get_settings()
configure_logging(settings.log_level, settings.log_file)
logger = get_logger("api")

_TOKEN_PATH_PREFIX = "/auth/booking/"


def _loggable_path(request: Request) -> str:
    path = request.url.path
    if path.startswith(_TOKEN_PATH_PREFIX):
        return _TOKEN_PATH_PREFIX + "[redacted]"
    return path


def _insecure_defaults(current: Settings) -> List[str]:
    if current.is_production:
        return []
    warnings: List[str] = []
    if current.auth_secret_key == DEFAULT_AUTH_SECRET_KEY:
        warnings.append("AUTH_SECRET_KEY is the default placeholder; sessions can be forged")
    if not current.auth_cookie_secure:
        warnings.append("AUTH_COOKIE_SECURE is disabled; the cookie travels over plain HTTP")
    return warnings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "app.startup",
        "Starting app",
        env=settings.app_env,
        version=settings.app_version,
        timezone=settings.business_timezone,
    )
    for warning in _insecure_defaults(settings):
        logger.warning("security.defaults", warning)
    yield
    await get_engine(settings.database_url).dispose()
    logger.info("app.shutdown", "Shutting down app")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger.info(
        "request.rejected",
        exc.message,
        path=_loggable_path(request),
        code=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request.invalid", "Rejected invalid request", path=_loggable_path(request))
    return JSONResponse(
        status_code=400,
        content={"message": "Validation error", "errors": jsonable_encoder(exc.errors())},
    )


@app.middleware("http")
async def request_logging(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = request.headers.get("x-request-id") or uuid4().hex
    start = perf_counter()
    status_code = 500

    with logger.context(
        request_id=request_id, method=request.method, path=_loggable_path(request)
    ):
        logger.debug(
            "request.start",
            "Started",
            client=request.client.host if request.client else None,
        )
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            logger.exception("request.error", "Unhandled error")
            raise
        finally:
            duration = perf_counter() - start
            # Label by route template so token and id path segments stay out of metrics.
            route = getattr(request.scope.get("route"), "path", "unmatched")
            observe_http_request(
                method=request.method,
                path=route,
                status=status_code,
                duration_seconds=duration,
            )
        logger.info(
            "request.complete",
            "Completed",
            status_code=status_code,
            duration_ms=round(duration * 1000, 1),
        )

    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(system.router)
app.include_router(auth.router)
app.include_router(availability.router)
app.include_router(appointments.router)
