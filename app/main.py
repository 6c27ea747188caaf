# app/main.py
"""
FastAPI application entry point.
Includes security middleware, error handlers, all routers and the live alert WebSocket.
"""

import os
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import alerts, receivers, devices, users, dashboard, health
from app.database import create_tables
from app.config import settings
from app.exceptions import PersistenceError, ValidationError, NotFoundError, DeliveryError
from app.services.alert_feed import alert_feed
from app.websocket import alerts_websocket
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Lab Security API",
    description="Alert store, receiver fan-out, ESP32 management and live alert feed.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dashboard and receiver apps run in the browser) ───────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to dashboard origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
OPEN_PATHS = {"/api/v1/receivers/heartbeat", "/api/v1/health", "/docs", "/redoc", "/openapi.json"}


def _is_receiver_offline(path: str) -> bool:
    return path.startswith("/api/v1/receivers/") and path.endswith("/offline")


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Heartbeats and offline notices are excluded: ESP32 firmware doesn't send keys.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in OPEN_PATHS or _is_receiver_offline(path) or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.exception_handler(DeliveryError)
async def delivery_error_handler(request: Request, exc: DeliveryError):
    logger.warning(f"Device request failed on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": f"Device unreachable: {exc.reason}", "device_name": exc.device_name},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(alerts.router,    prefix="/api/v1", tags=["🚨 Alerts"])
app.include_router(receivers.router, prefix="/api/v1", tags=["📡 Receivers"])
app.include_router(devices.router,   prefix="/api/v1", tags=["🔧 ESP32"])
app.include_router(users.router,     prefix="/api/v1", tags=["👤 Authorized Users"])
app.include_router(dashboard.router, prefix="/api/v1", tags=["📊 Dashboard"])
app.include_router(health.router,    prefix="/api/v1", tags=["💚 Health"])

app.websocket("/ws/alerts")(alerts_websocket)

# Enrolled face images
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Lab Security Backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"💓 Heartbeat expiry: {settings.HEARTBEAT_EXPIRY_SECONDS}s "
                f"(interval {settings.HEARTBEAT_INTERVAL_SECONDS}s)")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs — live alerts at /ws/alerts")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Lab Security Backend shutting down...")
    await alert_feed.close()
