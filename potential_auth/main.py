"""
The Potential auth service FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from potential_auth import config, db
from potential_auth.errors import ApiError
from potential_auth.middleware.rate_limit import rate_limiter
from potential_auth.routes import admin as admin_routes
from potential_auth.routes import auth_routes

logging.basicConfig(
    level=config.settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Background task for cleanup
async def cleanup_task():
    """
    Background task to prune old rate limit entries.

    Expired tokens are not swept here; they are ignored on read and
    deleted when someone tries to use them.

    Runs every 60 seconds.
    """
    while True:
        try:
            rate_limiter.cleanup_old_entries(max_age_hours=2)
        except Exception:
            logger.exception("Error in cleanup task")

        # Wait 60 seconds before next cleanup
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool (postgres token store only)
    - Start background cleanup task
    - Close database pool on shutdown
    """
    # Startup
    use_postgres = config.settings.TOKEN_STORE_BACKEND == "postgres"
    if use_postgres:
        await db.init_pool()
        logger.info("Database pool initialized")
    else:
        logger.warning("Using in-memory token store; tokens are lost on restart")

    cleanup_task_handle = asyncio.create_task(cleanup_task())
    logger.info("Background cleanup task started")

    yield

    # Shutdown
    cleanup_task_handle.cancel()
    try:
        await cleanup_task_handle
    except asyncio.CancelledError:
        logger.info("Background cleanup task stopped")

    if use_postgres:
        await db.close_pool()
        logger.info("Database pool closed")


app = FastAPI(
    title="The Potential Auth",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Admin-Key"],
    expose_headers=["Content-Length"],
    max_age=600,
)


# ── error handlers ──────────────────────────────────────────────────────────


@app.exception_handler(ApiError)
async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    """Render route errors as {"error": ..., "code": ...}."""
    content: dict[str, str] = {"error": exc.message}
    if exc.code:
        content["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or malformed fields are a 400, not FastAPI's default 422."""
    details = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    fields = ", ".join(str(d["loc"][-1]) for d in details if d["loc"])
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid or missing fields: {fields}" if fields else "Invalid request", "details": details},
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Never leak internals. Log with traceback."""
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Register routes
app.include_router(auth_routes.router)
app.include_router(admin_routes.router)


@app.get("/health")
@app.get(f"{config.settings.SERVICE_PREFIX}/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
