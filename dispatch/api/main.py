"""Dispatch FastAPI application: entry point.

Start with:
    uvicorn dispatch.api.main:app --reload --host 0.0.0.0 --port 8000

The routing provider comes from ROUTING_PROVIDER / GOOGLE_MAPS_API_KEY; without
a key the straight-line provider is used, so no external service is required
at startup.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError

from dispatch.clients.routing import build_routing_client
from dispatch.config import load_dispatch_config, load_routing_config, load_webhook_config
from dispatch.core.exceptions import DispatchError
from dispatch.core.logger import configure
from dispatch.infra.database.engine import (
    build_engine,
    build_session_factory,
    close_engine,
    ensure_database_exists,
    init_db,
)
from dispatch.services.navigation_service import NavigationService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ──────────────────────────────────────────────────
    configure()

    await ensure_database_exists()
    engine = build_engine()
    session_factory = build_session_factory(engine)
    await init_db()

    dispatch_config = load_dispatch_config()
    routing_config = load_routing_config()
    routing_client = build_routing_client(routing_config)

    app.state.session_factory = session_factory
    app.state.dispatch_config = dispatch_config
    app.state.webhook_config = load_webhook_config()
    app.state.routing_client = routing_client
    app.state.navigation = NavigationService(session_factory, routing_client, dispatch_config)
    logger.info("API: routing provider %s ready", routing_client.provider)

    yield

    # ── Shutdown ─────────────────────────────────────────────────
    await app.state.navigation.aclose()
    await routing_client.aclose()
    await close_engine()
    logger.info("API: engine disposed")


app = FastAPI(
    title="Dispatch API",
    version="1.0.0",
    description="Order handoff between customers, restaurants and drivers, with live navigation.",
    lifespan=lifespan,
)

# Rate limiter: RATE_LIMIT env var (default 120/minute)
_rate_limit = os.environ.get("RATE_LIMIT", "120/minute")
limiter = Limiter(key_func=get_remote_address, default_limits=[_rate_limit])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

_allowed_origins = os.environ.get(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error mapping ─────────────────────────────────────────────────

@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.to_dict())
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.response_body(),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("%s %s: database error", request.method, request.url.path)
    return JSONResponse(
        status_code=502,
        content={"detail": "Database operation failed", "code": "REMOTE_CALL_FAILED", "details": {}},
    )


# ── Optional API key authentication ──────────────────────────────
# With ADMIN_API_KEY set, every /api/v1/* request must send X-Api-Key.
_ADMIN_API_KEY = os.environ.get("ADMIN_API_KEY", "").strip() or None


@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    if _ADMIN_API_KEY and request.url.path.startswith("/api/v1"):
        if request.headers.get("X-Api-Key") != _ADMIN_API_KEY:
            return JSONResponse(
                status_code=401,
                content={"detail": "Unauthorized: set X-Api-Key header", "code": "UNAUTHORIZED"},
            )
    return await call_next(request)


# ── Routers ───────────────────────────────────────────────────────
from dispatch.api.routers import (  # noqa: E402
    delivery_assignments,
    drivers,
    navigation,
    orders,
    restaurant_assignments,
    webhooks,
)

app.include_router(orders.router, prefix="/api/v1")
app.include_router(restaurant_assignments.router, prefix="/api/v1")
app.include_router(delivery_assignments.router, prefix="/api/v1")
app.include_router(drivers.router, prefix="/api/v1")
app.include_router(navigation.router, prefix="/api/v1")
app.include_router(webhooks.router)  # No /api/v1/ prefix; bearer-token auth instead


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
