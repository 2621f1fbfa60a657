"""
The Social Bite — order tracking backend (FastAPI application).

Order placement and history over SQLite, plus the simulated delivery tracker:
status advances with elapsed time, observers are notified of every change and
a background watcher auto-refreshes orders that are being tracked.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from domain.responses import error_response
from routes import auth, health, orders, tracking

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Background refresh ──────────────────────────────────────────────

async def _refresh_with_own_session(order_id, user_id):
    """Refresh callback for the watcher: every tick opens its own DB session."""
    from database import async_session
    from services.order_store import SqlOrderStore
    from services.status_events import get_status_events
    from services.tracking_service import OrderTracker, TrackingConfig

    async with async_session() as db:
        tracker = OrderTracker(
            SqlOrderStore(db),
            events=get_status_events(),
            config=TrackingConfig.from_settings(),
        )
        return await tracker.refresh(order_id, user_id)


# ── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create DB tables, start the order watcher. Shutdown: stop it."""
    # Ensure data/ directory exists for file-backed SQLite
    if settings.database_url.startswith("sqlite:///./data/"):
        os.makedirs("data", exist_ok=True)

    settings.validate_production_settings()

    from database import init_db
    await init_db()
    logger.info("Database initialized")

    from services.order_watcher import OrderWatcher, set_order_watcher
    watcher = OrderWatcher(_refresh_with_own_session, interval_seconds=settings.tracking_refresh_seconds)
    set_order_watcher(watcher)
    logger.info(f"Order watcher started (interval {settings.tracking_refresh_seconds}s)")

    yield  # app runs here

    await watcher.stop_all()
    set_order_watcher(None)
    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title="The Social Bite API",
    description="Food ordering with simulated order tracking",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(orders.router)
app.include_router(tracking.router)


# ── Exception Handler ───────────────────────────────────────────────


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Catch-all for unhandled exceptions.

    Never return raw exception details to clients; the traceback is logged.
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_response("internal_server_error", "Internal server error"),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """
    Standardize HTTPException responses for frontend consumers.

    Keeps the original HTTP status code, but wraps the payload.
    """
    if hasattr(exc, "message") and hasattr(exc, "details"):
        # DomainError: NotFoundError -> "notfound", StorageError -> "storage", ...
        error_code = exc.__class__.__name__.replace("Error", "").lower()
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(error_code, exc.message, exc.details),
            headers=getattr(exc, "headers", None),
        )

    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response("http_error", message, detail if not isinstance(detail, str) else None),
        headers=getattr(exc, "headers", None),
    )


# ── Entrypoint ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
