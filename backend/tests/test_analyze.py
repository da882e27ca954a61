"""
Tests for /api/v1/analyze
=========================
Covers:
- Preflight: OPTIONS → 200, empty body, CORS headers
- Methods: GET/PUT/DELETE → 405
- Validation: missing / non-string / empty / whitespace text → 400
- Validation: text over 500 chars → 400, exactly 500 accepted
- Validation: unparseable body → 400, classifier never called
- Source: voice accepted, unknown source tolerated
- End-to-end with no provider configured (keyword rules)
- Provider failure still returns 200
- Unexpected classifier fault → 500 with details
- Health check

Run: pytest tests/test_analyze.py -v
"""

from __future__ import annotations

import re
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import respx
from fastapi.testclient import TestClient
from httpx import Response

from app.config import Settings
from app.models.mood import AnalysisResult
from app.services.mood_classifier import MoodClassifierService

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

ANALYZE_URL = "/api/v1/analyze"
_PROVIDER_URL = "https://api.openai.com/v1/chat/completions"

_MOCK_RESULT = AnalysisResult(
    emotion="calm",
    confidence=0.9,
    message="Sounds like a grounded day. Enjoy it.",
    action="Take three slow breaths",
    color="#84DCC6",
    tag="grounded",
)


def _mock_classifier(result: AnalysisResult | None = None, error: Exception | None = None) -> MagicMock:
    classifier = MagicMock()
    if error is not None:
        classifier.classify = AsyncMock(side_effect=error)
    else:
        classifier.classify = AsyncMock(return_value=result or _MOCK_RESULT)
    return classifier


def _fallback_only_classifier() -> MoodClassifierService:
    return MoodClassifierService(settings=Settings(openai_api_key=""))


@pytest.fixture
def client() -> TestClient:
    from app.main import app
    return TestClient(app)


def assert_cors_headers(resp) -> None:
    assert resp.headers["access-control-allow-origin"] == "*"
    methods = resp.headers["access-control-allow-methods"]
    for method in ("GET", "POST", "PUT", "DELETE", "OPTIONS"):
        assert method in methods
    allowed = resp.headers["access-control-allow-headers"].lower()
    assert "authorization" in allowed
    assert "x-client-info" in allowed


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestMethods:

    def test_options_preflight(self, client: TestClient):
        resp = client.options(ANALYZE_URL)

        assert resp.status_code == 200
        assert resp.content == b""
        assert_cors_headers(resp)

    def test_browser_preflight(self, client: TestClient):
        """A real preflight (Origin + requested method) gets the same empty 200."""
        resp = client.options(
            ANALYZE_URL,
            headers={
                "Origin": "https://journal.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, x-client-info, content-type",
            },
        )

        assert resp.status_code == 200
        assert resp.content == b""
        assert_cors_headers(resp)

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "TRACE"])
    def test_other_methods_rejected(self, client: TestClient, method: str):
        resp = client.request(method, ANALYZE_URL)

        assert resp.status_code == 405
        assert resp.json() == {"error": "Method not allowed"}
        assert resp.headers["content-type"].startswith("application/json")
        assert_cors_headers(resp)

    def test_head_rejected(self, client: TestClient):
        resp = client.head(ANALYZE_URL)

        assert resp.status_code == 405
        assert_cors_headers(resp)

    def test_unknown_path_keeps_default_404(self, client: TestClient):
        resp = client.get("/api/v1/nope")

        assert resp.status_code == 404
        assert resp.json() == {"detail": "Not Found"}


class TestValidation:

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"text": ""},
            {"text": "   "},
            {"text": "\n\t"},
            {"text": None},
            {"text": 42},
            {"text": ["sad"]},
            {"source": "voice"},
        ],
    )
    def test_text_required(self, client: TestClient, body: dict):
        classifier = _mock_classifier()
        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json=body)

        assert resp.status_code == 400
        assert resp.json() == {"error": "text field is required"}
        assert_cors_headers(resp)
        classifier.classify.assert_not_awaited()

    def test_unparseable_body(self, client: TestClient):
        classifier = _mock_classifier()
        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(
                ANALYZE_URL,
                content=b"{this is not json",
                headers={"Content-Type": "application/json"},
            )

        assert resp.status_code == 400
        assert resp.json()["error"] == "text field is required"
        classifier.classify.assert_not_awaited()

    def test_non_object_body(self, client: TestClient):
        classifier = _mock_classifier()
        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json=["I feel sad"])

        assert resp.status_code == 400
        classifier.classify.assert_not_awaited()

    def test_text_too_long(self, client: TestClient):
        classifier = _mock_classifier()
        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "a" * 501})

        assert resp.status_code == 400
        assert resp.json() == {"error": "text too long (max 500 characters)"}
        classifier.classify.assert_not_awaited()

    def test_text_at_limit_accepted(self, client: TestClient):
        classifier = _mock_classifier()
        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "a" * 500})

        assert resp.status_code == 200
        classifier.classify.assert_awaited_once_with("a" * 500)

    def test_text_is_trimmed_before_classification(self, client: TestClient):
        classifier = _mock_classifier()
        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "  feeling ok today \n"})

        assert resp.status_code == 200
        classifier.classify.assert_awaited_once_with("feeling ok today")


class TestSource:

    @pytest.mark.parametrize("source", ["text", "voice", "carrier-pigeon", 7, None])
    def test_source_never_rejected(self, client: TestClient, source):
        classifier = _mock_classifier()
        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "hello", "source": source})

        assert resp.status_code == 200
        classifier.classify.assert_awaited_once_with("hello")


class TestHappyPath:

    def test_returns_classifier_result(self, client: TestClient):
        with patch("app.routers.analyze.get_mood_classifier", return_value=_mock_classifier()):
            resp = client.post(ANALYZE_URL, json={"text": "Quiet afternoon", "source": "text"})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert_cors_headers(resp)
        assert resp.json() == _MOCK_RESULT.model_dump()

    def test_anxious_scenario_without_provider(self, client: TestClient):
        with patch(
            "app.routers.analyze.get_mood_classifier",
            return_value=_fallback_only_classifier(),
        ):
            resp = client.post(
                ANALYZE_URL,
                json={"text": "I can't sleep, stressed about my exam"},
            )

        assert resp.status_code == 200
        data = resp.json()
        assert data["emotion"] == "anxious"
        assert data["confidence"] == 0.65
        assert data["action"] == "4-4-6 breathing for 2 minutes"
        assert data["color"] == "#FFB86B"
        assert data["tag"] == "anxiety-relief"
        assert data["message"]

    def test_happy_scenario_without_provider(self, client: TestClient):
        with patch(
            "app.routers.analyze.get_mood_classifier",
            return_value=_fallback_only_classifier(),
        ):
            resp = client.post(
                ANALYZE_URL,
                json={"text": "just got an amazing offer!!", "source": "voice"},
            )

        assert resp.status_code == 200
        data = resp.json()
        assert data["emotion"] == "happy"
        assert data["confidence"] == 0.70
        assert data["tag"] == "celebration"

    def test_response_has_exactly_the_result_fields(self, client: TestClient):
        with patch(
            "app.routers.analyze.get_mood_classifier",
            return_value=_fallback_only_classifier(),
        ):
            resp = client.post(ANALYZE_URL, json={"text": "nothing special"})

        data = resp.json()
        assert set(data) == {"emotion", "confidence", "message", "action", "color", "tag"}
        assert re.fullmatch(r"#[0-9A-Fa-f]{6}", data["color"])


class TestResilience:

    @respx.mock
    def test_provider_outage_still_returns_200(self, client: TestClient):
        respx.post(_PROVIDER_URL).mock(return_value=Response(500, text="upstream down"))
        classifier = MoodClassifierService(
            settings=Settings(openai_api_key="sk-test", openai_api_url=_PROVIDER_URL)
        )

        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "Feeling lonely tonight"})

        assert resp.status_code == 200
        assert resp.json()["emotion"] == "sad"
        assert resp.json()["tag"] == "sadness-support"

    @respx.mock
    def test_garbage_provider_output_still_returns_200(self, client: TestClient):
        respx.post(_PROVIDER_URL).mock(
            return_value=Response(
                200,
                json={"choices": [{"message": {"content": '{"emotion": "sad"}'}}]},
            )
        )
        classifier = MoodClassifierService(
            settings=Settings(openai_api_key="sk-test", openai_api_url=_PROVIDER_URL)
        )

        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "so annoyed right now"})

        assert resp.status_code == 200
        assert resp.json()["emotion"] == "angry"

    def test_misconfigured_provider_url_still_returns_200(self, client: TestClient):
        classifier = MoodClassifierService(
            settings=Settings(openai_api_key="sk-test", openai_api_url="http://[::1")
        )

        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "I feel sad"})

        assert resp.status_code == 200
        assert resp.json()["emotion"] == "sad"

    def test_unexpected_fault_returns_500(self, client: TestClient):
        classifier = _mock_classifier(error=RuntimeError("classifier exploded"))

        with patch("app.routers.analyze.get_mood_classifier", return_value=classifier):
            resp = client.post(ANALYZE_URL, json={"text": "hello"})

        assert resp.status_code == 500
        assert resp.json() == {
            "error": "Internal server error",
            "details": "classifier exploded",
        }
        assert_cors_headers(resp)


class TestHealth:

    def test_health_check(self, client: TestClient):
        resp = client.get("/api/v1/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "service": "mood-analysis-api"}
