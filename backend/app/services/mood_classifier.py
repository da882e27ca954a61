"""
Mood Classifier Service
=======================
Classifies the emotion in a user's statement, using an OpenAI chat model
when one is configured and the keyword rules otherwise.

RESILIENCE FLOW (non-negotiable):
    1. No API key, or AI disabled → keyword rules, no network call
    2. ONE call to the provider: temperature 0, small token ceiling,
       bounded timeout, no retries
    3. Pull the first JSON object out of the reply (the model sometimes
       wraps it in prose or code fences despite instructions)
    4. Validate EVERY field against AnalysisResult, all or nothing
    5. Anything going wrong in 2-4 → keyword rules

The caller always gets a well-formed AnalysisResult. Provider outages,
rate limits and garbage output are never surfaced to the user.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.models.mood import (
    HEX_COLOR_PATTERN,
    VALID_EMOTIONS,
    AnalysisResult,
    ClassificationOutcome,
)
from app.services.fallback_classifier import fallback_classify

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are an empathetic analyzer. Return ONLY valid JSON matching the "
    "exact schema provided. No additional text."
)

_USER_PROMPT_TEMPLATE = """\
You are an empathetic analyzer. When given a short user text, produce ONLY a \
JSON object (no explanation, no surrounding text) that matches the following \
schema exactly:
{{
  "emotion": one of [{emotions}],
  "confidence": a number between 0.0 and 1.0,
  "message": a 1-2 sentence empathetic reply,
  "action": a short practical micro-action (max 10 words),
  "color": a hex color string matching {color_pattern}, suitable for UI theme,
  "tag": a short keyword tag
}}
Be concise, deterministic, and avoid speculative language. Do not include any \
extra fields or commentary. If you cannot determine an emotion, return \
"neutral" with confidence 0.5.

Analyze this text: "{text}"
"""

_json_decoder = json.JSONDecoder()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LLMProviderError(Exception):
    """Non-2xx response from the LLM provider."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"LLM provider error {status_code}: {body[:200]}")


class LLMResponseError(ValueError):
    """The provider answered, but not with a usable AnalysisResult."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_prompt(text: str) -> str:
    emotions = ",".join(f'"{emotion}"' for emotion in VALID_EMOTIONS)
    return _USER_PROMPT_TEMPLATE.format(
        emotions=emotions,
        color_pattern=HEX_COLOR_PATTERN,
        text=text,
    )


def extract_json_object(raw: str) -> Optional[dict[str, Any]]:
    """Return the first complete JSON object embedded in raw, or None.

    Scans each '{' left to right and tries to decode an object starting
    there, so prose and markdown fences around the answer are tolerated.
    An unrelated object that appears BEFORE the answer wins; it then fails
    validation and the caller falls back.
    """
    start = raw.find("{")
    while start != -1:
        try:
            candidate, _ = _json_decoder.raw_decode(raw, start)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = raw.find("{", start + 1)
    return None


# ---------------------------------------------------------------------------
# The classifier service
# ---------------------------------------------------------------------------

class MoodClassifierService:
    """Turns a statement into an AnalysisResult. Never raises provider faults."""

    def __init__(
        self,
        settings: Settings | None = None,
        fallback: Callable[[str], AnalysisResult] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._fallback = fallback or fallback_classify

    @property
    def primary_enabled(self) -> bool:
        return self._settings.primary_path_enabled

    async def classify(self, text: str) -> AnalysisResult:
        outcome = await self.classify_with_outcome(text)
        return outcome.result

    async def classify_with_outcome(self, text: str) -> ClassificationOutcome:
        """Try the LLM once, fall back to keyword rules on any failure."""
        if not self.primary_enabled:
            logger.debug("No LLM configured, using fallback classifier")
            return self._fallback_outcome(text)

        try:
            raw_response = await self._call_openai_api(text)
        except httpx.TimeoutException:
            logger.warning(
                "LLM call timed out after %.1fs, using fallback classifier",
                self._settings.openai_timeout_seconds,
            )
            return self._fallback_outcome(text)
        except LLMProviderError as exc:
            logger.warning("LLM provider returned %d, using fallback classifier", exc.status_code)
            return self._fallback_outcome(text)
        except LLMResponseError as exc:
            logger.warning("Unusable LLM reply (%s), using fallback classifier", exc)
            return self._fallback_outcome(text)
        except Exception:
            # Transport errors, bad envelopes, a misconfigured URL: all degrade
            logger.exception("LLM call failed, using fallback classifier")
            return self._fallback_outcome(text)

        try:
            result = self._parse_response(raw_response)
        except (LLMResponseError, ValidationError) as exc:
            logger.warning(
                "Discarding LLM response (%s): %s",
                exc.__class__.__name__,
                raw_response[:200],
            )
            return self._fallback_outcome(text)
        except Exception:
            logger.exception("Failed to parse LLM response: %s", raw_response[:200])
            return self._fallback_outcome(text)

        logger.info(
            "Mood classified by LLM: %s (confidence: %.2f)",
            result.emotion,
            result.confidence,
        )
        return ClassificationOutcome(result=result, source="primary")

    def _fallback_outcome(self, text: str) -> ClassificationOutcome:
        result = self._fallback(text)
        logger.info(
            "Mood classified by keyword rules: %s (confidence: %.2f)",
            result.emotion,
            result.confidence,
        )
        return ClassificationOutcome(result=result, source="fallback")

    async def _call_openai_api(self, text: str) -> str:
        """Send the statement to the chat completions endpoint, return the reply text.

        Raises LLMProviderError on non-2xx, httpx errors on transport
        failure or timeout, LLMResponseError when there is no content.
        """
        headers = {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "Content-Type": "application/json",
        }

        payload = {
            "model": self._settings.openai_model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(text)},
            ],
            "temperature": 0.0,
            "max_tokens": self._settings.openai_max_tokens,
        }

        async with httpx.AsyncClient(timeout=self._settings.openai_timeout_seconds) as client:
            response = await client.post(
                self._settings.openai_api_url,
                headers=headers,
                json=payload,
            )

        if not response.is_success:
            raise LLMProviderError(response.status_code, response.text)

        data = response.json()
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise LLMResponseError("provider returned no choices")

        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not content or not isinstance(content, str):
            raise LLMResponseError("provider returned empty content")
        return content

    def _parse_response(self, raw_response: str) -> AnalysisResult:
        """Extract and strictly validate the AnalysisResult in the reply."""
        parsed = extract_json_object(raw_response)
        if parsed is None:
            raise LLMResponseError("no JSON object in provider response")
        return AnalysisResult.model_validate(parsed, strict=True)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_default_classifier: MoodClassifierService | None = None


def get_mood_classifier() -> MoodClassifierService:
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = MoodClassifierService()
    return _default_classifier
