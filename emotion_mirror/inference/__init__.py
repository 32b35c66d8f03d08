"""Emotion inference: data model, pure pipeline stages, and signal sources."""

from emotion_mirror.inference.model import (
    CATEGORIES,
    EmotionCategory,
    EmotionUpdate,
    History,
    HistoryEntry,
    PersonalityProfile,
)
from emotion_mirror.inference.signals import (
    ClassifierSignalSource,
    SignalSource,
    SyntheticSignalSource,
    TickContext,
)

__all__ = [
    "CATEGORIES",
    "ClassifierSignalSource",
    "EmotionCategory",
    "EmotionUpdate",
    "History",
    "HistoryEntry",
    "PersonalityProfile",
    "SignalSource",
    "SyntheticSignalSource",
    "TickContext",
]
