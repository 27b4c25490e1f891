import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_scheduling.api.routes import (
    appointments,
    availability,
    boarding,
    portal,
    reservations,
    schedules,
    sequences,
)
from clinic_scheduling.core.config import _ENV_FILE, settings
from clinic_scheduling.core.db import init_db
from clinic_scheduling.core.errors import (
    ConflictError,
    RetryExhaustedError,
    SchedulingError,
    TransientStoreError,
)

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info(
        "Schedule mode: %s, slot step: %s, booking attempts: %d",
        settings.schedule_mode,
        settings.slot_step_minutes or "duration",
        settings.booking_max_attempts,
    )
    if settings.auto_create_tables:
        await init_db()
        logger.info("Tables created (auto_create_tables=true)")
    if not settings.email_enabled:
        logger.warning("Email: NOT configured, booking notifications will be skipped")
    yield


app = FastAPI(
    title="Clinic Scheduling API",
    description="Practitioner availability, conflict-safe booking and sequence codes",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(availability.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")
app.include_router(portal.router, prefix="/api/v1")
app.include_router(reservations.router, prefix="/api/v1")
app.include_router(schedules.router, prefix="/api/v1")
app.include_router(sequences.router, prefix="/api/v1")
app.include_router(boarding.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    # A taken slot is an expected answer, not a fault
    logger.info("Conflict on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"conflict": True, "code": exc.code, "message": exc.message, "alternatives": exc.alternatives},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(TransientStoreError)
@app.exception_handler(RetryExhaustedError)
async def retryable_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.warning("Retryable failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "retryable": True},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
