"""Signal sources — produce one raw ScoreMap per tick.

Two strategies share the ``produce_raw_scores(ctx)`` coroutine:

- SyntheticSignalSource: circadian / weekday / personality-biased
  baselines plus bounded jitter from an injectable ``random.Random``.
- ClassifierSignalSource: awaits an external classifier call and maps its
  (label, score) into a sparse ScoreMap.  A timeout or any classifier
  failure falls back to the synthetic strategy for that tick only.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Final

from emotion_mirror.inference.model import (
    CATEGORIES,
    EmotionCategory,
    PersonalityProfile,
    ScoreMap,
)

log = logging.getLogger(__name__)

E = EmotionCategory


class ClassifierError(RuntimeError):
    """Raised when an external classifier is unavailable or returns junk."""


@dataclass(slots=True, frozen=True)
class TickContext:
    """Inputs visible to a signal source for one tick."""

    now: datetime  # local wall-clock time (time-of-day, weekday)
    ts: float  # monotonic seconds
    personality: PersonalityProfile = field(default_factory=PersonalityProfile)


@dataclass(slots=True, frozen=True)
class ClassifierResult:
    label: EmotionCategory
    score: float


# ── Label Normalisation ─────────────────────────────────────────────

EMOTION_ALIASES: Final[dict[str, str]] = {
    "joy": "happy",
    "happiness": "happy",
    "sadness": "sad",
    "anger": "angry",
    "surprise": "surprised",
    "fearful": "fear",
    "scared": "fear",
    "disgusted": "disgust",
    "calm": "neutral",
}


def normalize_label(name: str) -> EmotionCategory | None:
    key = name.strip().lower().replace("-", "_").replace(" ", "_")
    key = EMOTION_ALIASES.get(key, key)
    try:
        return EmotionCategory(key)
    except ValueError:
        return None


# ── Base ────────────────────────────────────────────────────────────


class SignalSource:
    """Base for signal strategies.  Subclasses override produce_raw_scores."""

    kind: str = ""

    async def produce_raw_scores(self, ctx: TickContext) -> ScoreMap:
        raise NotImplementedError


# ── Synthetic ───────────────────────────────────────────────────────

# Per-category floor keeps every score positive for the normaliser.
SCORE_FLOORS: Final[dict[EmotionCategory, float]] = {
    E.HAPPY: 0.05,
    E.SAD: 0.02,
    E.ANGRY: 0.01,
    E.SURPRISED: 0.05,
    E.FEAR: 0.01,
    E.DISGUST: 0.005,
    E.NEUTRAL: 0.15,
}
HAPPY_CAP: Final[float] = 0.95

# Period (s) and amplitude of the slow mood oscillation.
_WAVE_PERIOD_S = 15.0
_WAVE_AMPLITUDE = 0.15


def time_of_day_band(hour: int) -> str:
    if 6 <= hour <= 9:
        return "morning"
    if 10 <= hour <= 16:
        return "day"
    if 17 <= hour <= 20:
        return "evening"
    return "night"


def synthetic_scores(ctx: TickContext, rng: random.Random) -> ScoreMap:
    """Personality + circadian + weekday baselines with bounded jitter."""
    p = ctx.personality

    happiness = 0.4 + p.extroversion * 0.3 - p.neuroticism * 0.2
    anxiety = p.neuroticism * 0.4
    curiosity = p.openness * 0.3
    calm = p.agreeableness * 0.2

    band = time_of_day_band(ctx.now.hour)
    if band == "morning":
        happiness += 0.25
        anxiety -= 0.1
    elif band == "day":
        happiness += 0.15
        curiosity += 0.2 * p.openness
    elif band == "evening":
        happiness += 0.1 * p.extroversion
        calm += 0.2
    else:
        happiness -= 0.2
        anxiety += 0.1

    weekday = ctx.now.weekday()
    if weekday == 0:  # Monday
        anxiety += 0.15
        happiness -= 0.1
    elif weekday in (4, 5):  # Friday, Saturday
        happiness += 0.2
        anxiety -= 0.1

    wave = math.sin(ctx.ts / _WAVE_PERIOD_S) * _WAVE_AMPLITUDE
    shift = (rng.random() - 0.5) * 0.2

    raw: ScoreMap = {
        E.HAPPY: min(HAPPY_CAP, happiness + wave + shift + rng.random() * 0.2),
        E.SAD: anxiety * 0.6 + rng.random() * 0.15,
        E.ANGRY: (1.0 - p.agreeableness) * 0.3 + rng.random() * 0.1,
        E.SURPRISED: curiosity + rng.random() * 0.4,
        E.FEAR: anxiety + rng.random() * 0.08,
        E.DISGUST: rng.random() * 0.05,
        E.NEUTRAL: calm + rng.random() * 0.3,
    }
    return {c: max(SCORE_FLOORS[c], raw[c]) for c in CATEGORIES}


class SyntheticSignalSource(SignalSource):
    """Deterministic for a given ``rng`` seed and tick context sequence."""

    kind = "synthetic"

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    async def produce_raw_scores(self, ctx: TickContext) -> ScoreMap:
        return synthetic_scores(ctx, self.rng)


# ── External Classifier ─────────────────────────────────────────────

# Residual mass for categories the classifier did not name.
CLASSIFIER_RESIDUALS: Final[dict[EmotionCategory, float]] = {
    E.HAPPY: 0.10,
    E.SAD: 0.05,
    E.ANGRY: 0.03,
    E.SURPRISED: 0.10,
    E.FEAR: 0.02,
    E.DISGUST: 0.01,
}
NEUTRAL_RESIDUAL_MIN: Final[float] = 0.1


def scores_from_classifier(label: EmotionCategory, score: float) -> ScoreMap:
    """Sparse map: *label* carries *score*, the rest keep small residuals."""
    scores: ScoreMap = dict(CLASSIFIER_RESIDUALS)
    scores[E.NEUTRAL] = max(NEUTRAL_RESIDUAL_MIN, 1.0 - score)
    scores[label] = score
    return scores


ClassifyFn = Callable[[], Awaitable[ClassifierResult]]


class ClassifierSignalSource(SignalSource):
    """Adapts an async classifier call; falls back to synthetic per tick."""

    kind = "classifier"

    def __init__(
        self,
        classify: ClassifyFn,
        fallback: SignalSource | None = None,
        timeout_s: float = 0.5,
    ) -> None:
        self._classify = classify
        self.fallback = fallback or SyntheticSignalSource()
        self.timeout_s = timeout_s
        self.fallback_count = 0
        self.last_result: ClassifierResult | None = None

    async def produce_raw_scores(self, ctx: TickContext) -> ScoreMap:
        try:
            result = await asyncio.wait_for(self._classify(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            return await self._fall_back(ctx, f"timeout after {self.timeout_s:.2f}s")
        except ClassifierError as e:
            return await self._fall_back(ctx, str(e) or e.__class__.__name__)
        except Exception as e:
            return await self._fall_back(ctx, f"{e.__class__.__name__}: {e}")

        self.last_result = result
        return scores_from_classifier(result.label, result.score)

    async def _fall_back(self, ctx: TickContext, reason: str) -> ScoreMap:
        self.fallback_count += 1
        log.warning("classifier unavailable (%s), using synthetic scores", reason)
        return await self.fallback.produce_raw_scores(ctx)
