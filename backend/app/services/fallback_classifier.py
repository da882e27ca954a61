"""
Fallback Classifier
===================
Deterministic keyword classifier used whenever the LLM path is
unavailable, disabled, or returns something we can't trust.

Decision logic:
    1. Lower-case the text.
    2. Check the keyword sets in a fixed priority order:
       anxious → happy → sad → angry → calm.
    3. The first category with ANY substring hit wins. Later categories
       are not checked, so "stressed but got an offer" is anxious.
    4. No hit → the neutral / reflection template.

Every category maps to one fixed result. Confidence is a per-category
constant; it does not depend on text length or on how many keywords
matched. Same text in, same result out, always.
"""

from __future__ import annotations

from types import MappingProxyType

from app.models.mood import AnalysisResult

# ---------------------------------------------------------------------------
# Keyword sets, in priority order
# ---------------------------------------------------------------------------

KEYWORD_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "anxious",
        ("anxious", "nervous", "can't sleep", "stressed", "panic", "worried",
         "exam", "test", "deadline"),
    ),
    (
        "happy",
        ("happy", "excited", "got", "offer", "great", "awesome", "celebrate",
         "love", "amazing"),
    ),
    (
        "sad",
        ("sad", "depressed", "unhappy", "lost", "cry", "hurt", "lonely", "miss"),
    ),
    (
        "angry",
        ("angry", "mad", "furious", "upset", "hate", "annoyed"),
    ),
    (
        "calm",
        ("calm", "peaceful", "relaxed", "content", "serene", "tranquil"),
    ),
)

# ---------------------------------------------------------------------------
# Result templates keyed by emotion
# ---------------------------------------------------------------------------

RESULT_TEMPLATES: MappingProxyType[str, AnalysisResult] = MappingProxyType({
    "anxious": AnalysisResult(
        emotion="anxious",
        confidence=0.65,
        message="It's normal to feel anxious. Try a short breathing exercise to calm your mind.",
        action="4-4-6 breathing for 2 minutes",
        color="#FFB86B",
        tag="anxiety-relief",
    ),
    "happy": AnalysisResult(
        emotion="happy",
        confidence=0.70,
        message="That's wonderful! Celebrate this moment and share your joy with others.",
        action="Write down 3 things you're grateful for",
        color="#7AD1FF",
        tag="celebration",
    ),
    "sad": AnalysisResult(
        emotion="sad",
        confidence=0.68,
        message="It's okay to feel sad. Be gentle with yourself and reach out to someone you trust.",
        action="Listen to uplifting music for 10 minutes",
        color="#6C7BFF",
        tag="sadness-support",
    ),
    "angry": AnalysisResult(
        emotion="angry",
        confidence=0.66,
        message="Anger is valid. Take a moment to process your feelings before responding.",
        action="Take a 5-minute walk outside",
        color="#FF6B6B",
        tag="anger-management",
    ),
    "calm": AnalysisResult(
        emotion="calm",
        confidence=0.72,
        message="Great to hear you're feeling calm. Enjoy this peaceful state of mind.",
        action="Practice mindfulness for 3 minutes",
        color="#84DCC6",
        tag="mindfulness",
    ),
    "neutral": AnalysisResult(
        emotion="neutral",
        confidence=0.55,
        message="Thanks for sharing. Take a moment to reflect on how you're really feeling.",
        action="Journal for 5 minutes",
        color="#E6EEF7",
        tag="reflection",
    ),
})


def match_emotion(text: str) -> str:
    """Return the first emotion whose keyword set hits, or 'neutral'."""
    lowered = text.lower()
    for emotion, keywords in KEYWORD_RULES:
        if any(keyword in lowered for keyword in keywords):
            return emotion
    return "neutral"


def fallback_classify(text: str) -> AnalysisResult:
    """Classify text with the fixed keyword rules. Pure and deterministic."""
    return RESULT_TEMPLATES[match_emotion(text)]
