from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.auth import router as auth_router
from app.api.health import router as health_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.registration import router as registration_router
from app.api.schools import router as schools_router
from app.core.config import SETTINGS
from app.core.errors import (
    DojoError,
    DuplicateConstraintError,
    InputValidationError,
    NotFoundError,
    PersistenceError,
)
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

# Domain errors that escape a router; anything unlisted is a 500.
_ERROR_STATUS: dict[type[DojoError], int] = {
    InputValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateConstraintError: status.HTTP_409_CONFLICT,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="dojo-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)


@app.exception_handler(DojoError)
async def dojo_error_handler(request: Request, exc: DojoError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error("Unhandled %s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        # Backend details stay in the log.
        detail = "Service temporarily unavailable" if status_code == 503 else "Internal Server Error"
    else:
        detail = exc.message
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": exc.code})


# The web client runs on a separate origin and sends the bearer token.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# RequestContext → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(registration_router)
app.include_router(schools_router)

logger.info(
    "dojo-service ready  env=%s port=%d client_url=%s database=%s cache=%s",
    SETTINGS.app_env,
    SETTINGS.port,
    SETTINGS.client_url,
    "postgres" if SETTINGS.database_url else "in-memory",
    "redis" if SETTINGS.redis_url else "in-memory",
)
