# main.py — Taskboard API
# Features:
# - Request correlation IDs and timing
# - Security headers
# - Uniform {ok, data?, message?} envelope for every error
# - Health check with DB verification
# - All routers registered

import os
import uuid
import time
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import clear_session_cookie
from database import init_db, close_db, get_db_session, engine, DATABASE_URL
from errors import AppError, SessionError
from telemetry import setup_telemetry, shutdown_telemetry

# Logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("taskboard")

VERSION = "1.0.0"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


def _check_startup_config():
    """Validate critical configuration on startup."""
    warnings = []

    jwt_key = os.getenv("JWT_SECRET_KEY", "")
    if not jwt_key or len(jwt_key) < 32:
        warnings.append(
            "JWT_SECRET_KEY is not set or shorter than 32 characters; "
            "sessions are signed with an ephemeral key"
        )

    if ENVIRONMENT == "production":
        if DATABASE_URL.startswith("sqlite"):
            warnings.append("DATABASE_URL points at SQLite in production")
        if os.getenv("COOKIE_SECURE", "false").lower() != "true":
            warnings.append("COOKIE_SECURE is off in production; the session cookie will travel over plain HTTP")
        if "*" in ALLOWED_ORIGINS:
            warnings.append("CORS_ORIGINS contains '*' but credentials are allowed")

    for w in warnings:
        logger.warning(w)

    return len(warnings) == 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Taskboard API v{VERSION} ({ENVIRONMENT})...")
    await init_db()
    _check_startup_config()
    # No-op unless OTEL_EXPORTER_OTLP_ENDPOINT is set
    provider = setup_telemetry(app, engine)
    yield
    logger.info("Shutting down Taskboard API...")
    shutdown_telemetry(provider)
    await close_db()


app = FastAPI(
    title="Taskboard",
    description="Projects, modules and Kanban boards with drag-and-drop ordering",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ============================================================
# CORS
# ============================================================

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID", "X-Correlation-ID"],
    expose_headers=["X-Request-ID", "X-Correlation-ID"],
)


# ============================================================
# MIDDLEWARE: Correlation IDs + Timing
# ============================================================

@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    correlation_id = request.headers.get("X-Correlation-ID", request_id)
    request.state.request_id = request_id
    request.state.correlation_id = correlation_id

    start = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Correlation-ID"] = correlation_id
    response.headers["X-Response-Time"] = f"{duration:.4f}s"

    logger.info(
        f"{request.method} {request.url.path} → {response.status_code} "
        f"({duration:.3f}s) [rid={request_id[:8]}]"
    )
    return response


# ============================================================
# MIDDLEWARE: Security Headers
# ============================================================

@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Cache-Control"] = "no-store"
    if os.getenv("COOKIE_SECURE", "false").lower() == "true":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

def _envelope_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "message": message})


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    response = _envelope_error(exc.status_code, exc.message)
    if isinstance(exc, SessionError):
        clear_session_cookie(response)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Joined into one message; the client shows it as-is
    messages = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", []) if part not in ("body", "query", "path")]
        msg = str(err.get("msg", "invalid value"))
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return _envelope_error(400, "; ".join(messages) or "Invalid data.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope_error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception [rid={getattr(request.state, 'request_id', '-')}]: {exc}",
        exc_info=True,
    )
    return _envelope_error(500, "Internal server error.")


# ============================================================
# ROUTERS
# ============================================================

from routers import auth, users, projects, modules, columns, tasks

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(projects.router)
app.include_router(modules.router)
app.include_router(columns.router)
app.include_router(tasks.router)


# ============================================================
# HEALTH & ROOT
# ============================================================

@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db_session)):
    """Health check with database connectivity verification"""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        db_status = "unavailable"

    return {
        "ok": db_status == "connected",
        "data": {
            "status": "healthy" if db_status == "connected" else "degraded",
            "version": VERSION,
            "environment": ENVIRONMENT,
            "database": db_status,
        },
    }


@app.get("/")
async def root():
    return {
        "ok": True,
        "data": {
            "name": "Taskboard",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "status": "operational",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=ENVIRONMENT != "production",
        workers=int(os.getenv("WORKERS", 1)),
    )
