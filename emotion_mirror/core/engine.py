"""EmotionEngine — Inactive/Active state machine around the tick pipeline.

Each tick:
1. Build the tick context (wall clock, monotonic ts, personality view)
2. Signal source → raw scores (pending classifier override wins)
3. Correlation rules → normalise → temporal smoothing
4. Dominant selection → trend consistency → adjusted confidence
5. Personality drift, history append
6. Emission gate → deliver EmotionUpdate to consumers in tick order

Ticks are serialised by a single lock and run from one asyncio task per
engine.  Deactivation waits for an in-flight tick, so a tick either
completes with its emission or never starts.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable

from emotion_mirror.config import ConfigurationError, EngineConfig
from emotion_mirror.inference.model import (
    EmotionCategory,
    EmotionUpdate,
    History,
    HistoryEntry,
    PersonalityProfile,
    ScoreMap,
)
from emotion_mirror.inference.pipeline import (
    adjust_correlations,
    adjusted_confidence,
    is_distribution,
    normalize,
    select_dominant,
    should_emit,
    smooth,
    trend_consistency,
    update_personality,
)
from emotion_mirror.inference.signals import (
    ClassifierSignalSource,
    ClassifyFn,
    SignalSource,
    SyntheticSignalSource,
    TickContext,
    normalize_label,
    scores_from_classifier,
)

log = logging.getLogger(__name__)

# Per-subscriber queue bound; the oldest undelivered update is dropped first.
SUBSCRIBER_QUEUE_SIZE = 64

EmotionCallback = Callable[[EmotionUpdate], Any]


@dataclass(slots=True)
class EngineState:
    """Everything a session mutates.  Owned by exactly one engine."""

    history: History
    personality: PersonalityProfile = field(default_factory=PersonalityProfile)
    distribution: ScoreMap | None = None
    last_update: EmotionUpdate | None = None
    tick_count: int = 0
    emit_count: int = 0


@dataclass(slots=True, frozen=True)
class TickResult:
    """Full trace of one tick, emitted or not."""

    tick: int
    source: str  # "synthetic" | "classifier" | "override" | custom kind
    raw: ScoreMap
    adjusted: ScoreMap
    distribution: ScoreMap
    emotion: EmotionCategory
    raw_confidence: float
    consistency: float
    confidence: float
    emitted: bool


class EmotionEngine:
    """Single owner of EngineState; drives the pipeline once per tick."""

    def __init__(
        self,
        source: SignalSource | None = None,
        *,
        classify: ClassifyFn | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._explicit_source = source
        self._classify = classify
        self._rng = rng
        self._clock = clock
        self._wall_clock = wall_clock

        self._config = EngineConfig()
        self._source: SignalSource | None = None
        self._state: EngineState | None = None
        self._active = False

        self._pending: tuple[EmotionCategory, float] | None = None
        self._last_text: str = ""

        self._listeners: list[EmotionCallback] = []
        self._queues: set[asyncio.Queue[EmotionUpdate | None]] = set()

        self._tick_lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    # ── Lifecycle ────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def source(self) -> SignalSource | None:
        return self._source

    async def activate(
        self, config: EngineConfig | None = None, *, autorun: bool = True
    ) -> None:
        """Inactive → Active.  Raises ConfigurationError and stays Inactive."""
        if self._active:
            log.debug("activate ignored: engine already active")
            return

        cfg = config or EngineConfig()
        cfg.validate()
        source = self._build_source(cfg)

        self._config = cfg
        self._source = source
        self._state = self._prepare_state(cfg)
        self._stop.clear()
        self._active = True
        log.info(
            "engine active (source=%s, period=%.2fs, threshold=%.2f, capacity=%d)",
            source.kind,
            cfg.tick_period_s,
            cfg.emission_threshold,
            cfg.history_capacity,
        )

        if autorun:
            self._task = asyncio.create_task(self._run(), name="emotion-engine-tick")

    async def deactivate(self) -> None:
        """Active → Inactive.  Idempotent; never interrupts an in-flight tick."""
        if not self._active and self._task is None:
            return

        self._stop.set()
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            await task

        async with self._tick_lock:
            self._active = False
            self._pending = None
            for q in list(self._queues):
                _put_dropping_oldest(q, None)
            self._queues.clear()
            if not self._config.retain_state:
                self._state = None
        log.info("engine inactive")

    def _build_source(self, cfg: EngineConfig) -> SignalSource:
        if self._explicit_source is not None:
            return self._explicit_source

        rng = random.Random(cfg.seed) if cfg.seed is not None else self._rng
        synthetic = SyntheticSignalSource(rng)
        if cfg.signal_source == "synthetic":
            return synthetic
        if self._classify is None:
            raise ConfigurationError(
                "signal_source", "classifier source selected but no classifier wired"
            )
        return ClassifierSignalSource(
            self._classify, fallback=synthetic, timeout_s=cfg.classifier_timeout_s
        )

    def _prepare_state(self, cfg: EngineConfig) -> EngineState:
        prev = self._state
        if prev is None or not cfg.retain_state:
            return EngineState(history=History(cfg.history_capacity))
        if prev.history.capacity != cfg.history_capacity:
            prev.history = History.from_entries(cfg.history_capacity, prev.history)
        return prev

    async def _run(self) -> None:
        """Tick loop: ticks start one period apart until stopped."""
        period = self._config.tick_period_s
        while not self._stop.is_set():
            t0 = time.monotonic()
            try:
                await self.tick()
            except Exception:
                log.exception("tick failed")
            sleep_s = max(0.0, period - (time.monotonic() - t0))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=sleep_s)
                return
            except asyncio.TimeoutError:
                pass

    # ── Inputs ───────────────────────────────────────────────────────

    def submit_classifier_result(self, label: EmotionCategory | str, score: float) -> None:
        """Use (label, score) instead of the signal source on the next tick."""
        category = label if isinstance(label, EmotionCategory) else normalize_label(label)
        if category is None:
            raise ValueError(f"unknown emotion label: {label!r}")
        score = float(score)
        if not math.isfinite(score) or not 0.0 <= score <= 1.0:
            raise ValueError(f"score must be within [0, 1], got {score!r}")
        self._pending = (category, score)

    def submit_text_signal(
        self, text: str, label: EmotionCategory | str, score: float
    ) -> None:
        """Accept a transcript already classified upstream; the pair drives the next tick."""
        self.submit_classifier_result(label, score)
        self._last_text = text

    # ── Outputs ──────────────────────────────────────────────────────

    def on_emotion_update(self, callback: EmotionCallback) -> Callable[[], None]:
        """Register a synchronous consumer.  Returns an unsubscribe function."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def subscribe(self) -> asyncio.Queue[EmotionUpdate | None]:
        """Queue of updates for async consumers.  ``None`` marks deactivation."""
        q: asyncio.Queue[EmotionUpdate | None] = asyncio.Queue(
            maxsize=SUBSCRIBER_QUEUE_SIZE
        )
        self._queues.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue[EmotionUpdate | None]) -> None:
        self._queues.discard(q)

    def get_personality_profile(self) -> PersonalityProfile:
        if self._state is None:
            return PersonalityProfile()
        return self._state.personality

    def get_history_snapshot(self) -> tuple[HistoryEntry, ...]:
        if self._state is None:
            return ()
        return self._state.history.snapshot()

    def last_distribution(self) -> dict[EmotionCategory, float] | None:
        if self._state is None or self._state.distribution is None:
            return None
        return dict(self._state.distribution)

    def status(self) -> dict[str, Any]:
        state = self._state
        last = state.last_update if state else None
        out: dict[str, Any] = {
            "active": self._active,
            "source": self._source.kind if self._source else None,
            "tick_count": state.tick_count if state else 0,
            "emit_count": state.emit_count if state else 0,
            "history_len": len(state.history) if state else 0,
            "last_update": last.to_dict() if last else None,
            "last_text": self._last_text,
            "subscribers": len(self._queues),
            "config": self._config.to_dict(),
        }
        if isinstance(self._source, ClassifierSignalSource):
            out["classifier_fallbacks"] = self._source.fallback_count
        return out

    # ── Tick ─────────────────────────────────────────────────────────

    async def tick(self) -> TickResult | None:
        """Run one full pipeline pass.  Returns None when inactive."""
        async with self._tick_lock:
            state = self._state
            if not self._active or state is None or self._source is None:
                return None
            return await self._run_tick(state, self._source)

    async def _run_tick(self, state: EngineState, source: SignalSource) -> TickResult:
        cfg = self._config
        ts = self._clock()
        ctx = TickContext(now=self._wall_clock(), ts=ts, personality=state.personality)

        pending, self._pending = self._pending, None
        if pending is not None:
            raw = scores_from_classifier(*pending)
            source_kind = "override"
        else:
            raw = await source.produce_raw_scores(ctx)
            source_kind = source.kind

        adjusted = adjust_correlations(raw)
        distribution = smooth(
            normalize(adjusted),
            state.history,
            alpha=cfg.smoothing_alpha,
            window=cfg.smoothing_window,
        )
        if not is_distribution(distribution):
            log.warning("smoothed distribution drifted, re-normalising")
            distribution = normalize(distribution)

        emotion, raw_conf = select_dominant(distribution)
        consistency = trend_consistency(
            emotion,
            state.history,
            window=cfg.consistency_window,
            min_entries=cfg.consistency_min_entries,
        )
        confidence = adjusted_confidence(raw_conf, consistency)

        state.personality = update_personality(
            state.personality, emotion, confidence, step=cfg.step_size
        )
        state.history.append(HistoryEntry(emotion, confidence, ts))
        state.distribution = distribution
        state.tick_count += 1

        emitted = should_emit(confidence, cfg.emission_threshold)
        log.debug(
            "tick %d: %s raw=%.3f cons=%.2f conf=%.3f emit=%s (%s)",
            state.tick_count,
            emotion.value,
            raw_conf,
            consistency,
            confidence,
            emitted,
            source_kind,
        )
        if emitted:
            update = EmotionUpdate(
                tick=state.tick_count,
                emotion=emotion,
                confidence=confidence,
                distribution=MappingProxyType(dict(distribution)),
                ts=ts,
            )
            state.last_update = update
            state.emit_count += 1
            self._dispatch(update)

        return TickResult(
            tick=state.tick_count,
            source=source_kind,
            raw=dict(raw),
            adjusted=adjusted,
            distribution=dict(distribution),
            emotion=emotion,
            raw_confidence=raw_conf,
            consistency=consistency,
            confidence=confidence,
            emitted=emitted,
        )

    def _dispatch(self, update: EmotionUpdate) -> None:
        for callback in list(self._listeners):
            try:
                callback(update)
            except Exception:
                log.exception("emotion update consumer failed")
        for q in list(self._queues):
            _put_dropping_oldest(q, update)


def _put_dropping_oldest(q: asyncio.Queue, item: Any) -> None:
    try:
        q.put_nowait(item)
    except asyncio.QueueFull:
        try:
            q.get_nowait()
            q.put_nowait(item)
        except (asyncio.QueueEmpty, asyncio.QueueFull):
            pass

