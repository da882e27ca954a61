"""
Mood Analysis API
=================
FastAPI application entry point. Mount routers here.

CORS headers are set by the analyze router on every response it sends,
preflight included, so no CORS middleware is mounted.
"""

import logging

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.routers import analyze

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Mood Analysis API",
    description="Empathetic mood classification for journal entries: API Backend",
    version="0.1.0",
    docs_url="/api/docs" if settings.environment != "production" else None,
    redoc_url="/api/redoc" if settings.environment != "production" else None,
)

app.add_exception_handler(StarletteHTTPException, analyze.http_error_handler)

app.include_router(analyze.router)


@app.get("/api/v1/health")
async def health_check() -> dict:
    return {"status": "ok", "service": "mood-analysis-api"}
