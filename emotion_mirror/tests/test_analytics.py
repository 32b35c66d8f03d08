"""Tests for emotion_mirror.core.analytics."""

from __future__ import annotations

import pytest

from emotion_mirror.core.analytics import EmotionAnalytics
from emotion_mirror.inference.model import EmotionCategory, EmotionUpdate

E = EmotionCategory


def _update(emotion: EmotionCategory, confidence: float = 0.8, tick: int = 1) -> EmotionUpdate:
    return EmotionUpdate(tick=tick, emotion=emotion, confidence=confidence, ts=float(tick))


def _feed(analytics: EmotionAnalytics, *emotions: EmotionCategory) -> None:
    for i, emotion in enumerate(emotions, start=1):
        analytics.record(_update(emotion, tick=i))


class TestEmotionAnalytics:
    def test_empty(self):
        a = EmotionAnalytics()
        assert a.summary() == {
            "count": 0,
            "trend": "stable",
            "stats": {},
            "average_intensity": 0.0,
        }

    def test_low_intensity_ignored(self):
        a = EmotionAnalytics(min_intensity=0.2)
        a.record(_update(E.SAD, confidence=0.2))
        a.record(_update(E.SAD, confidence=0.1))
        assert len(a) == 0

    def test_trend_needs_five_entries(self):
        a = EmotionAnalytics()
        _feed(a, E.HAPPY, E.HAPPY, E.HAPPY, E.HAPPY)
        assert a.mood_trend() == "stable"

    def test_improving(self):
        a = EmotionAnalytics()
        _feed(a, E.SAD, E.SAD, E.SAD, E.HAPPY, E.SURPRISED, E.HAPPY, E.NEUTRAL, E.SAD)
        # last five: happy, surprised, happy, neutral, sad
        assert a.mood_trend() == "improving"

    def test_declining(self):
        a = EmotionAnalytics()
        _feed(a, E.HAPPY, E.ANGRY, E.FEAR, E.DISGUST, E.NEUTRAL)
        assert a.mood_trend() == "declining"

    def test_neutral_only_is_stable(self):
        a = EmotionAnalytics()
        _feed(a, *[E.NEUTRAL] * 6)
        assert a.mood_trend() == "stable"

    def test_stats_percentages(self):
        a = EmotionAnalytics()
        _feed(a, E.HAPPY, E.HAPPY, E.SAD, E.NEUTRAL)
        assert a.emotion_stats() == {"happy": 50, "sad": 25, "neutral": 25}

    def test_window_bounded(self):
        a = EmotionAnalytics(window=3)
        _feed(a, E.SAD, E.HAPPY, E.HAPPY, E.HAPPY)
        assert len(a) == 3
        assert a.emotion_stats() == {"happy": 100}

    def test_average_intensity(self):
        a = EmotionAnalytics()
        a.record(_update(E.HAPPY, 0.5))
        a.record(_update(E.SAD, 0.9))
        assert a.average_intensity() == pytest.approx(0.7)
        assert a.summary()["average_intensity"] == 0.7

    def test_reset(self):
        a = EmotionAnalytics()
        _feed(a, E.HAPPY, E.SAD)
        a.reset()
        assert len(a) == 0
