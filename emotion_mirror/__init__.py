"""Emotion mirror: multi-signal emotion inference with temporal stabilisation."""

__version__ = "1.0.0"
