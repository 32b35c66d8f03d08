"""Emotion inference data model.

No asyncio, no I/O.  Categories, score maps, the bounded history ring,
the latent personality profile and the emission record all live here so
that every pipeline stage and consumer shares one vocabulary.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Final, Iterable, Iterator, Mapping

# Tolerance for distribution sums and tie-breaks.
EPSILON: Final[float] = 1e-6


class EmotionCategory(str, Enum):
    """Closed, ordered category set.  Declaration order is the tie-break order."""

    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    SURPRISED = "surprised"
    FEAR = "fear"
    DISGUST = "disgust"
    NEUTRAL = "neutral"


CATEGORIES: Final[tuple[EmotionCategory, ...]] = tuple(EmotionCategory)

# Raw or normalised per-category scores.
ScoreMap = dict[EmotionCategory, float]


def empty_scores() -> ScoreMap:
    return {c: 0.0 for c in CATEGORIES}


def neutral_distribution() -> ScoreMap:
    """The single fallback distribution for degenerate input."""
    scores = empty_scores()
    scores[EmotionCategory.NEUTRAL] = 1.0
    return scores


def scores_to_dict(scores: Mapping[EmotionCategory, float]) -> dict[str, float]:
    return {c.value: round(float(scores.get(c, 0.0)), 6) for c in CATEGORIES}


# ── History ─────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    """One tick's outcome.  Immutable once created."""

    emotion: EmotionCategory
    confidence: float
    timestamp: float  # monotonic seconds

    def to_dict(self) -> dict:
        return {
            "emotion": self.emotion.value,
            "confidence": round(self.confidence, 4),
            "timestamp": self.timestamp,
        }


class History:
    """Append-only ring of HistoryEntry; the oldest entry is evicted when full."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"history capacity must be >= 1, got {capacity}")
        self._entries: deque[HistoryEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def recent(self, n: int) -> tuple[HistoryEntry, ...]:
        """Return up to the last *n* entries, oldest first."""
        if n <= 0:
            return ()
        if n >= len(self._entries):
            return tuple(self._entries)
        return tuple(self._entries)[-n:]

    def snapshot(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))

    @classmethod
    def from_entries(cls, capacity: int, entries: Iterable[HistoryEntry]) -> History:
        h = cls(capacity)
        for e in entries:
            h.append(e)
        return h


# ── Personality ─────────────────────────────────────────────────────

TRAITS: Final[tuple[str, ...]] = (
    "extroversion",
    "neuroticism",
    "openness",
    "agreeableness",
    "conscientiousness",
)


@dataclass(slots=True, frozen=True)
class PersonalityProfile:
    """Slowly adapting latent traits, each in [0, 1].

    Frozen: the adapter returns a new profile each tick, so the synthetic
    signal source only ever sees a read-only view.
    """

    extroversion: float = 0.5
    neuroticism: float = 0.3
    openness: float = 0.7
    agreeableness: float = 0.6
    conscientiousness: float = 0.5

    def to_dict(self) -> dict[str, float]:
        return {t: round(getattr(self, t), 4) for t in TRAITS}


# ── Emission ────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class EmotionUpdate:
    """What consumers receive when a tick passes the emission gate."""

    tick: int  # 1-based tick sequence within the session
    emotion: EmotionCategory
    confidence: float
    distribution: Mapping[EmotionCategory, float] = field(
        default_factory=lambda: MappingProxyType(neutral_distribution())
    )
    ts: float = 0.0  # monotonic seconds

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "emotion": self.emotion.value,
            "confidence": round(self.confidence, 4),
            "distribution": scores_to_dict(self.distribution),
            "ts": self.ts,
        }
