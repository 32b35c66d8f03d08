"""Session analytics over emitted emotion updates.

Consumes EmotionUpdate via ``engine.on_emotion_update(analytics.record)``
and keeps its own bounded window; it never reads engine state directly.
"""

from __future__ import annotations

from collections import Counter, deque
from typing import Final

from emotion_mirror.inference.model import EmotionCategory, EmotionUpdate

E = EmotionCategory

POSITIVE_EMOTIONS: Final[frozenset[EmotionCategory]] = frozenset({E.HAPPY, E.SURPRISED})
NEGATIVE_EMOTIONS: Final[frozenset[EmotionCategory]] = frozenset(
    {E.SAD, E.ANGRY, E.FEAR, E.DISGUST}
)

TREND_WINDOW: Final[int] = 5


class EmotionAnalytics:
    """Rolling mood trend, emotion shares and average intensity."""

    def __init__(self, window: int = 30, min_intensity: float = 0.2) -> None:
        self._entries: deque[EmotionUpdate] = deque(maxlen=window)
        self._min_intensity = min_intensity

    def record(self, update: EmotionUpdate) -> None:
        if update.confidence <= self._min_intensity:
            return
        self._entries.append(update)

    def reset(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def mood_trend(self) -> str:
        """``"improving"``, ``"declining"`` or ``"stable"`` over the last 5 updates."""
        if len(self._entries) < TREND_WINDOW:
            return "stable"
        recent = list(self._entries)[-TREND_WINDOW:]
        positive = sum(1 for u in recent if u.emotion in POSITIVE_EMOTIONS)
        negative = sum(1 for u in recent if u.emotion in NEGATIVE_EMOTIONS)
        if positive > negative:
            return "improving"
        if negative > positive:
            return "declining"
        return "stable"

    def emotion_stats(self) -> dict[str, int]:
        """Percentage share per emotion seen in the window."""
        if not self._entries:
            return {}
        counts = Counter(u.emotion for u in self._entries)
        total = len(self._entries)
        return {e.value: round(n / total * 100) for e, n in counts.items()}

    def average_intensity(self) -> float:
        if not self._entries:
            return 0.0
        return sum(u.confidence for u in self._entries) / len(self._entries)

    def summary(self) -> dict:
        return {
            "count": len(self._entries),
            "trend": self.mood_trend(),
            "stats": self.emotion_stats(),
            "average_intensity": round(self.average_intensity(), 4),
        }
