"""Pure emotion pipeline stages — correlation, normalisation, smoothing,
trend consistency, confidence, selection, personality drift, emission gate.

No asyncio, no I/O, no engine state.  Every function takes its inputs
explicitly and returns a new value; the engine owns the mutable state and
threads it through these stages once per tick.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Final, Mapping

from emotion_mirror.inference.model import (
    CATEGORIES,
    EPSILON,
    EmotionCategory,
    History,
    PersonalityProfile,
    ScoreMap,
    neutral_distribution,
)

E = EmotionCategory

# ── Correlation Rules ───────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class CorrelationRule:
    """When *trigger* exceeds *threshold*, scale and shift other categories."""

    trigger: EmotionCategory
    threshold: float
    multipliers: Mapping[EmotionCategory, float] = field(default_factory=dict)
    increments: Mapping[EmotionCategory, float] = field(default_factory=dict)


# Applied in this order; each rule sees the output of the previous one.
CORRELATION_RULES: Final[tuple[CorrelationRule, ...]] = (
    CorrelationRule(
        E.HAPPY,
        0.6,
        multipliers={E.SAD: 0.1, E.ANGRY: 0.15, E.FEAR: 0.1, E.SURPRISED: 1.2},
    ),
    CorrelationRule(
        E.SAD,
        0.5,
        multipliers={E.HAPPY: 0.15, E.SURPRISED: 0.3},
        increments={E.NEUTRAL: 0.1},
    ),
    CorrelationRule(
        E.ANGRY,
        0.4,
        multipliers={E.HAPPY: 0.1, E.NEUTRAL: 0.4, E.FEAR: 0.5},
    ),
)


def adjust_correlations(
    scores: Mapping[EmotionCategory, float],
    rules: tuple[CorrelationRule, ...] = CORRELATION_RULES,
) -> ScoreMap:
    """Make raw scores internally consistent (e.g. strong joy suppresses sadness)."""
    out: ScoreMap = {c: float(scores.get(c, 0.0)) for c in CATEGORIES}
    for rule in rules:
        if out[rule.trigger] > rule.threshold:
            for cat, k in rule.multipliers.items():
                out[cat] *= k
            for cat, inc in rule.increments.items():
                out[cat] += inc
    return out


# ── Normalisation ───────────────────────────────────────────────────


def normalize(scores: Mapping[EmotionCategory, float]) -> ScoreMap:
    """Rescale to a probability distribution.

    Negative entries count as zero.  A zero or non-finite total yields the
    neutral fallback distribution.
    """
    values = {c: max(0.0, float(scores.get(c, 0.0))) for c in CATEGORIES}
    total = math.fsum(values.values())
    if not math.isfinite(total) or total <= 0.0:
        return neutral_distribution()
    return {c: v / total for c, v in values.items()}


def is_distribution(scores: Mapping[EmotionCategory, float]) -> bool:
    values = [scores.get(c, 0.0) for c in CATEGORIES]
    if any(not math.isfinite(v) or v < -EPSILON or v > 1.0 + EPSILON for v in values):
        return False
    return abs(math.fsum(values) - 1.0) <= EPSILON


# ── Temporal Smoothing ──────────────────────────────────────────────


def smooth(
    distribution: Mapping[EmotionCategory, float],
    history: History,
    alpha: float = 0.7,
    window: int = 5,
) -> ScoreMap:
    """Blend the current distribution with recent per-category confidence.

    Historical term for a category is the mean confidence of the last
    *window* entries whose emotion is that category (0 if none).  Applied
    to every category, then re-normalised.
    """
    recent = history.recent(window)
    blended: ScoreMap = {}
    for cat in CATEGORIES:
        hits = [e.confidence for e in recent if e.emotion is cat]
        hist = math.fsum(hits) / len(hits) if hits else 0.0
        blended[cat] = distribution.get(cat, 0.0) * alpha + hist * (1.0 - alpha)
    return normalize(blended)


# ── Trend Consistency & Confidence ──────────────────────────────────

NEUTRAL_PRIOR: Final[float] = 0.5


def trend_consistency(
    candidate: EmotionCategory,
    history: History,
    window: int = 8,
    min_entries: int = 3,
) -> float:
    """Fraction of the last *window* entries that agree with *candidate*."""
    recent = history.recent(window)
    if len(recent) < min_entries:
        return NEUTRAL_PRIOR
    matches = sum(1 for e in recent if e.emotion is candidate)
    return matches / len(recent)


def adjusted_confidence(raw_confidence: float, consistency: float) -> float:
    """Trust a recurring dominant emotion more than an isolated spike."""
    value = raw_confidence * (0.7 + 0.3 * consistency)
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


# ── Dominant Selection & Emission Gate ──────────────────────────────


def select_dominant(
    distribution: Mapping[EmotionCategory, float],
) -> tuple[EmotionCategory, float]:
    """Highest-scoring category; near-ties go to the earliest category."""
    best = CATEGORIES[0]
    best_val = float(distribution.get(best, 0.0))
    for cat in CATEGORIES[1:]:
        val = float(distribution.get(cat, 0.0))
        if val > best_val + EPSILON:
            best, best_val = cat, val
    return best, best_val


def should_emit(confidence: float, threshold: float) -> bool:
    """Inclusive lower bound."""
    return confidence >= threshold


# ── Personality Drift ───────────────────────────────────────────────

# emotion: (confidence threshold, {trait: direction})
PERSONALITY_RULES: Final[dict[EmotionCategory, tuple[float, dict[str, int]]]] = {
    E.HAPPY: (0.7, {"extroversion": +1, "neuroticism": -1}),
    E.SAD: (0.6, {"neuroticism": +1}),
    E.SURPRISED: (0.5, {"openness": +1}),
    E.ANGRY: (0.5, {"agreeableness": -1}),
}


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def update_personality(
    profile: PersonalityProfile,
    emotion: EmotionCategory,
    confidence: float,
    step: float = 0.01,
) -> PersonalityProfile:
    """Nudge traits by at most *step* each after a confident detection."""
    rule = PERSONALITY_RULES.get(emotion)
    if rule is None:
        return profile
    threshold, deltas = rule
    if confidence <= threshold:
        return profile
    changes = {
        trait: _clamp01(getattr(profile, trait) + direction * step)
        for trait, direction in deltas.items()
    }
    return replace(profile, **changes)
