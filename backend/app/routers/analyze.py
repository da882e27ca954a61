"""
Mood Analysis Router
====================
POST /api/v1/analyze: classify the emotion in a journal statement.

The gateway in front of the classifier. It owns the HTTP contract:

    1. OPTIONS short-circuits with 200 and CORS headers (preflight)
    2. Any method other than POST/OPTIONS → 405
    3. Body must carry a non-empty `text` string → else 400
    4. `text` over the length limit → 400
    5. `source` outside text/voice is tolerated and treated as "text"
    6. Trimmed text → classifier → 200 with the AnalysisResult

Errors use a flat `{"error": ...}` body. Every response, preflight and
405 included, carries the CORS headers. Provider failures never reach this layer (the classifier falls back);
anything else that escapes the classifier becomes a 500.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request, Response, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.models.mood import (
    VALID_SOURCES,
    AnalysisRequest,
    AnalysisResult,
    ErrorResponse,
)
from app.services.mood_classifier import get_mood_classifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["analyze"])

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}

TEXT_REQUIRED = "text field is required"
METHOD_NOT_ALLOWED = "Method not allowed"
INTERNAL_ERROR = "Internal server error"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class InvalidAnalysisRequest(Exception):
    """Client sent something the classifier must never see."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def _json_response(status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def _error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return _json_response(status_code, body)


async def _read_json_body(request: Request) -> Any:
    """Decode the body, or None if it isn't JSON at all."""
    try:
        return await request.json()
    except ValueError:
        return None


def _validate_request(body: Any, max_length: int) -> AnalysisRequest:
    """Apply the gateway rules in order. First failure wins.

    The length limit is measured on the text as submitted, before trimming.
    """
    text = body.get("text") if isinstance(body, dict) else None
    if not isinstance(text, str) or not text.strip():
        raise InvalidAnalysisRequest(TEXT_REQUIRED)

    if len(text) > max_length:
        raise InvalidAnalysisRequest(f"text too long (max {max_length} characters)")

    source = body.get("source", "text")
    if not isinstance(source, str) or source not in VALID_SOURCES:
        logger.warning("Unrecognised source %r, treating request as 'text'", source)
        source = "text"

    return AnalysisRequest(text=text.strip(), source=source)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.options("/analyze", include_in_schema=False)
async def analyze_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post(
    "/analyze",
    response_model=AnalysisResult,
    summary="Analyse the mood of a statement",
    description=(
        "Classify a short typed or voice-transcribed statement into one of six "
        "emotions, with an empathetic message and a micro-action. Falls back to "
        "keyword rules when the language model is unavailable."
    ),
    responses={
        200: {"description": "Analysis produced (by the model or the keyword rules)"},
        400: {"model": ErrorResponse, "description": "Missing, empty or oversized text"},
        500: {"model": ErrorResponse, "description": "Unexpected internal fault"},
    },
)
async def analyze_mood(request: Request) -> JSONResponse:
    """Validate the request, classify it, and return the AnalysisResult."""
    settings = get_settings()

    try:
        body = await _read_json_body(request)
        analysis_request = _validate_request(body, settings.max_text_length)
    except InvalidAnalysisRequest as exc:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)

    try:
        classifier = get_mood_classifier()
        result = await classifier.classify(analysis_request.text)
    except Exception as exc:
        # The classifier recovers provider faults itself. Reaching this
        # branch means something genuinely unexpected broke.
        logger.exception("Mood analysis failed (source=%s)", analysis_request.source)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            INTERNAL_ERROR,
            details=str(exc),
        )

    logger.info(
        "Analysed %s entry (%d chars): %s",
        analysis_request.source,
        len(analysis_request.text),
        result.emotion,
    )
    return _json_response(status.HTTP_200_OK, result.model_dump())


# ---------------------------------------------------------------------------
# Exception handler (registered on the app in main.py)
# ---------------------------------------------------------------------------

async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Turn routing-level 405s (any method but POST/OPTIONS) into the flat error body."""
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return _error_response(status.HTTP_405_METHOD_NOT_ALLOWED, METHOD_NOT_ALLOWED)
    return await http_exception_handler(request, exc)
