"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.cm_audit.api.router import router as audit_router
from src.cm_autopay.api.router import router as cron_router
from src.cm_common.database import engine
from src.cm_common.errors import AppError, StoreError
from src.cm_common.redis_client import close_redis, get_redis
from src.cm_common.response import error_response
from src.cm_config.api.router import router as settings_router
from src.cm_gateway.auth.dependencies import config_store
from src.cm_gateway.middleware.request_log import RequestLogMiddleware
from src.cm_ledger.api.admin_router import router as ledger_admin_router
from src.cm_ledger.api.router import router as finance_router
from src.cm_notify.dispatcher import get_dispatcher
from src.cm_voting.api.admin_router import router as proposals_admin_router
from src.cm_voting.api.router import router as proposals_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: logging, configuration snapshot, DB + Redis checks. Shutdown: drain + dispose."""
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = config_store.load()
    logger.info(
        "%s starting for %s (%s)",
        settings.APP_NAME,
        config.organization.name,
        config.currency,
    )
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    await redis.ping()
    yield
    # Shutdown
    await get_dispatcher().drain()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _error_json(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.kind)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_json(request, exc)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_json(request, StoreError())


@app.exception_handler(RedisError)
async def redis_error_handler(request: Request, exc: RedisError) -> JSONResponse:
    logger.exception("Redis failure on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_json(request, StoreError("Lease store unavailable"))


app.include_router(finance_router, prefix="/api/v1")
app.include_router(ledger_admin_router, prefix="/api/v1")
app.include_router(cron_router, prefix="/api/v1")
app.include_router(proposals_router, prefix="/api/v1")
app.include_router(proposals_admin_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")
app.include_router(settings_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": VERSION}
