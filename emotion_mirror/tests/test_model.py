"""Tests for emotion_mirror.inference.model — categories, history ring, profile."""

from __future__ import annotations

import dataclasses

import pytest

from emotion_mirror.inference.model import (
    CATEGORIES,
    EmotionCategory,
    EmotionUpdate,
    History,
    HistoryEntry,
    PersonalityProfile,
    neutral_distribution,
)

E = EmotionCategory


def _entry(i: int, emotion: EmotionCategory = E.HAPPY) -> HistoryEntry:
    return HistoryEntry(emotion=emotion, confidence=0.5, timestamp=float(i))


class TestCategories:
    def test_fixed_order(self):
        assert [c.value for c in CATEGORIES] == [
            "happy",
            "sad",
            "angry",
            "surprised",
            "fear",
            "disgust",
            "neutral",
        ]

    def test_neutral_distribution(self):
        d = neutral_distribution()
        assert d[E.NEUTRAL] == 1.0
        assert sum(d.values()) == 1.0
        assert all(d[c] == 0.0 for c in CATEGORIES if c is not E.NEUTRAL)


class TestHistory:
    def test_append_in_order(self):
        h = History(5)
        for i in range(3):
            h.append(_entry(i))
        assert [e.timestamp for e in h.snapshot()] == [0.0, 1.0, 2.0]

    def test_never_exceeds_capacity(self):
        h = History(30)
        for i in range(1, 36):
            h.append(_entry(i))
        snap = h.snapshot()
        assert len(snap) == 30
        # Entries 1..5 evicted; the oldest survivor is entry 6.
        assert snap[0].timestamp == 6.0
        assert snap[-1].timestamp == 35.0

    @pytest.mark.parametrize("capacity,k", [(1, 1), (5, 7), (20, 3)])
    def test_keeps_last_capacity_entries(self, capacity, k):
        h = History(capacity)
        for i in range(capacity + k):
            h.append(_entry(i))
        expected = [float(i) for i in range(k, capacity + k)]
        assert [e.timestamp for e in h] == expected

    def test_recent(self):
        h = History(10)
        for i in range(6):
            h.append(_entry(i))
        assert [e.timestamp for e in h.recent(3)] == [3.0, 4.0, 5.0]
        assert len(h.recent(20)) == 6
        assert h.recent(0) == ()

    def test_snapshot_is_detached(self):
        h = History(3)
        h.append(_entry(0))
        snap = h.snapshot()
        h.append(_entry(1))
        assert len(snap) == 1

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            History(0)

    def test_from_entries_shrinks(self):
        h = History(10)
        for i in range(8):
            h.append(_entry(i))
        smaller = History.from_entries(4, h)
        assert smaller.capacity == 4
        assert [e.timestamp for e in smaller] == [4.0, 5.0, 6.0, 7.0]

    def test_entry_immutable(self):
        e = _entry(0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            e.confidence = 0.9  # type: ignore[misc]


class TestPersonalityProfile:
    def test_defaults(self):
        p = PersonalityProfile()
        assert p.to_dict() == {
            "extroversion": 0.5,
            "neuroticism": 0.3,
            "openness": 0.7,
            "agreeableness": 0.6,
            "conscientiousness": 0.5,
        }

    def test_frozen(self):
        p = PersonalityProfile()
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.openness = 0.1  # type: ignore[misc]


class TestEmotionUpdate:
    def test_to_dict(self):
        u = EmotionUpdate(tick=3, emotion=E.SAD, confidence=0.61234, ts=12.5)
        d = u.to_dict()
        assert d["tick"] == 3
        assert d["emotion"] == "sad"
        assert d["confidence"] == 0.6123
        assert d["distribution"]["neutral"] == 1.0
        assert set(d["distribution"]) == {c.value for c in CATEGORIES}
