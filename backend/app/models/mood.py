"""
Mood Analysis Schemas
=====================
Pydantic models for the analysis API. These are the contract between
the journaling client and the backend.

Key design decisions:
- AnalysisResult is used twice: to validate what the LLM sends back and
  to describe the 200 response body. Whatever reaches the client has
  passed the same checks, whichever path produced it.
- LLM output is validated in strict mode, so "0.8" (a string) is not
  silently coerced into a confidence.
- ClassificationOutcome records which path produced a result. It stays
  server-side; the client only ever sees the AnalysisResult.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Allowed values
# ---------------------------------------------------------------------------

Emotion = Literal["happy", "sad", "anxious", "neutral", "angry", "calm"]
InputSource = Literal["text", "voice"]

VALID_EMOTIONS: tuple[str, ...] = ("happy", "sad", "anxious", "neutral", "angry", "calm")
VALID_SOURCES = frozenset({"text", "voice"})

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
MAX_ACTION_WORDS = 10


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class AnalysisRequest(BaseModel):
    """A validated analysis request, built by the gateway after its checks."""

    text: str = Field(
        ...,
        min_length=1,
        description="The user's statement, trimmed. Never empty.",
    )
    source: InputSource = Field(
        default="text",
        description="How the statement was captured: typed or voice-transcribed.",
    )


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

class AnalysisResult(BaseModel):
    """Structured emotional assessment returned to the client."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    emotion: Emotion = Field(..., description="Primary emotion expressed in the text.")
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Heuristic certainty in the emotion. Not calibrated.",
    )
    message: str = Field(
        ...,
        min_length=1,
        description="A short empathetic reply (1-2 sentences).",
    )
    action: str = Field(
        ...,
        min_length=1,
        description="A short practical micro-action, at most 10 words.",
    )
    color: str = Field(
        ...,
        pattern=HEX_COLOR_PATTERN,
        description="Theme colour for the UI, e.g. '#FFB86B'.",
    )
    tag: str = Field(..., min_length=1, description="Short keyword tag.")

    @field_validator("message", "action", "tag")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("action")
    @classmethod
    def _short_action(cls, value: str) -> str:
        if len(value.split()) > MAX_ACTION_WORDS:
            raise ValueError(f"action must be at most {MAX_ACTION_WORDS} words")
        return value


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx response from the analysis endpoint."""

    error: str
    details: str | None = None


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClassificationOutcome:
    """An AnalysisResult tagged with the path that produced it."""

    result: AnalysisResult
    source: Literal["primary", "fallback"]

    @property
    def used_fallback(self) -> bool:
        return self.source == "fallback"
