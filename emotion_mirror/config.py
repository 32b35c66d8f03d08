"""Emotion mirror configuration with defaults, loadable from YAML."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

log = logging.getLogger(__name__)

SIGNAL_SOURCES = ("synthetic", "classifier")


class ConfigurationError(ValueError):
    """Invalid engine configuration.  ``field`` names the offending option."""

    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(f"{field_name}: {reason}")
        self.field = field_name
        self.reason = reason


# camelCase option names accepted from external callers.
_ALIASES: dict[str, str] = {
    "historyCapacity": "history_capacity",
    "smoothingAlpha": "smoothing_alpha",
    "smoothingWindow": "smoothing_window",
    "consistencyWindow": "consistency_window",
    "consistencyMinEntries": "consistency_min_entries",
    "emissionThreshold": "emission_threshold",
    "stepSize": "step_size",
    "tickPeriodS": "tick_period_s",
    "signalSource": "signal_source",
    "classifierTimeoutS": "classifier_timeout_s",
    "retainState": "retain_state",
}


@dataclass
class EngineConfig:
    history_capacity: int = 30
    smoothing_alpha: float = 0.7  # weight of the current tick
    smoothing_window: int = 5
    consistency_window: int = 8
    consistency_min_entries: int = 3
    emission_threshold: float = 0.3
    step_size: float = 0.01
    tick_period_s: float = 0.8
    signal_source: str = "synthetic"  # "synthetic" | "classifier"
    classifier_timeout_s: float = 0.5
    seed: int | None = None
    retain_state: bool = False  # keep history/personality across sessions

    def validate(self) -> None:
        """Raise ConfigurationError on the first invalid field."""
        for name in (
            "history_capacity",
            "smoothing_window",
            "consistency_window",
            "consistency_min_entries",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(name, f"must be an integer, got {value!r}")
            if value < 1:
                raise ConfigurationError(name, f"must be >= 1, got {value}")

        for name in ("smoothing_alpha", "emission_threshold", "step_size"):
            value = getattr(self, name)
            if not _is_number(value) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(name, f"must be within [0, 1], got {value!r}")

        for name in ("tick_period_s", "classifier_timeout_s"):
            value = getattr(self, name)
            if not _is_number(value) or value <= 0.0:
                raise ConfigurationError(name, f"must be > 0, got {value!r}")

        if self.signal_source not in SIGNAL_SOURCES:
            raise ConfigurationError(
                "signal_source",
                f"must be one of {', '.join(SIGNAL_SOURCES)}, got {self.signal_source!r}",
            )
        if self.seed is not None and (
            isinstance(self.seed, bool) or not isinstance(self.seed, int)
        ):
            raise ConfigurationError("seed", f"must be an integer, got {self.seed!r}")
        if not isinstance(self.retain_state, bool):
            raise ConfigurationError(
                "retain_state", f"must be a boolean, got {self.retain_state!r}"
            )

    def with_overrides(self, overrides: Mapping[str, Any]) -> EngineConfig:
        """Return a copy with *overrides* applied (camelCase keys accepted)."""
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(key, "unknown option")
            changes[name] = value
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def from_mapping(overrides: Mapping[str, Any] | None = None) -> EngineConfig:
    cfg = EngineConfig().with_overrides(overrides or {})
    cfg.validate()
    return cfg


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass
class ClassifierConfig:
    base_url: str = ""  # empty: no external classifier
    request_timeout_s: float = 2.5


@dataclass
class NetworkConfig:
    http_port: int = 8080
    host: str = "0.0.0.0"


@dataclass
class MirrorConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)


def load_config(path: str | Path | None = None) -> MirrorConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        return MirrorConfig()

    path = Path(path)
    if not path.exists():
        log.warning("config file not found: %s, using defaults", path)
        return MirrorConfig()

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        log.warning("config load error: %s, using defaults", e)
        return MirrorConfig()

    cfg = MirrorConfig()
    if "engine" in raw:
        cfg.engine = cfg.engine.with_overrides(raw["engine"] or {})
    for section_name in ("classifier", "network"):
        if section_name in raw:
            section = getattr(cfg, section_name)
            for k, v in (raw[section_name] or {}).items():
                setattr(section, k, v)

    log.info("config loaded from %s", path)
    return cfg
