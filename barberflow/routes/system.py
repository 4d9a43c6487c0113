from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from barberflow.config import Settings, get_settings
from barberflow.dependencies import get_db_session
from barberflow.logger import get_logger
from barberflow.metrics import metrics_content_type, render_metrics
from barberflow.utils import utcnow

router = APIRouter()
_logger = get_logger("api.system")


@router.get("/health", tags=["system"])
async def health(session: AsyncSession = Depends(get_db_session)) -> JSONResponse:
    """Liveness plus a round trip to the database."""
    body = {"status": "ok", "time": utcnow().isoformat(), "database": "ok"}
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        _logger.warning("health.database", "Database check failed", error_type=type(exc).__name__)
        body.update(status="degraded", database="unavailable")
        return JSONResponse(status_code=503, content=body)
    return JSONResponse(content=body)


@router.get("/version", tags=["system"])
async def version(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"app": settings.app_name, "version": settings.app_version, "env": settings.app_env}


@router.get("/metrics", include_in_schema=False)
async def metrics(settings: Settings = Depends(get_settings)) -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=404, detail="Metrics are disabled.")
    return Response(content=render_metrics(), media_type=metrics_content_type())
