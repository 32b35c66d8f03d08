"""Request models for the emotion mirror HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from emotion_mirror.inference.model import CATEGORIES
from emotion_mirror.inference.signals import normalize_label


class ClassifierSubmission(BaseModel):
    """A pre-classified (label, score) pair for the next tick."""

    label: str
    score: float = Field(ge=0.0, le=1.0)

    @field_validator("label")
    @classmethod
    def _validate_label(cls, value: str) -> str:
        category = normalize_label(value)
        if category is None:
            allowed = ", ".join(c.value for c in CATEGORIES)
            raise ValueError(f"unsupported emotion '{value}'. allowed: {allowed}")
        return category.value


class TextSubmission(ClassifierSubmission):
    """Transcribed speech plus the label an upstream classifier gave it."""

    text: str = Field(max_length=2000)


class ActivateRequest(BaseModel):
    """Config overrides applied on top of the server's engine config."""

    config: dict[str, Any] = Field(default_factory=dict)
