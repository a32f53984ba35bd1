"""FastAPI application entrypoint for the case notes service."""

from __future__ import annotations

import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.logging import get_logger, setup_logging
from web import routers

setup_logging()

logger = get_logger(__name__)

app = FastAPI(
    title="Case Notes API",
    description="Notes attached to parties and cases, with revision history and differences.",
    version="1.0.0",
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and latency of each request."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.get("/", summary="Health Check", tags=["Default"])
def health_check():
    """Report that the API process is up."""
    return {"status": "ok", "message": "Case Notes API is running."}


@app.get("/healthz", include_in_schema=False)
def readiness_probe():
    """Lightweight probe that also pings the database."""
    db_ok, db_error = routers.health.ping_database()
    payload = {"status": "ok" if db_ok else "unhealthy", "database": {"ok": db_ok}}
    if db_error:
        payload["database"]["error"] = db_error
        logger.warning("Database ping failed: %s", db_error)
    status_code = status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=payload)


app.include_router(routers.notes.router, prefix="/api/v1")
app.include_router(routers.revisions.router, prefix="/api/v1")
app.include_router(routers.health.router, prefix="/api/v1")
