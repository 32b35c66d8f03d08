"""Tests for emotion_mirror.config — defaults, validation, overrides, YAML loading."""

from __future__ import annotations

import logging

import pytest

from emotion_mirror.config import (
    ConfigurationError,
    EngineConfig,
    MirrorConfig,
    from_mapping,
    load_config,
)


class TestEngineConfig:
    def test_defaults_valid(self):
        cfg = EngineConfig()
        cfg.validate()
        assert cfg.history_capacity == 30
        assert cfg.smoothing_alpha == 0.7
        assert cfg.emission_threshold == 0.3
        assert cfg.tick_period_s == 0.8
        assert cfg.signal_source == "synthetic"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("history_capacity", 0),
            ("history_capacity", 2.5),
            ("history_capacity", True),
            ("smoothing_window", -1),
            ("consistency_window", 0),
            ("consistency_min_entries", 0),
            ("smoothing_alpha", 1.5),
            ("smoothing_alpha", float("nan")),
            ("emission_threshold", -0.1),
            ("step_size", "0.01"),
            ("tick_period_s", 0),
            ("classifier_timeout_s", -1.0),
            ("signal_source", "camera"),
            ("seed", 1.5),
            ("retain_state", "no"),
            ("retain_state", 1),
        ],
    )
    def test_invalid_field(self, field, value):
        cfg = EngineConfig(**{field: value})
        with pytest.raises(ConfigurationError) as exc:
            cfg.validate()
        assert exc.value.field == field

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            EngineConfig(step_size=2.0).validate()

    def test_camel_case_overrides(self):
        cfg = EngineConfig().with_overrides(
            {"historyCapacity": 10, "emissionThreshold": 0.5, "tick_period_s": 0.2}
        )
        assert cfg.history_capacity == 10
        assert cfg.emission_threshold == 0.5
        assert cfg.tick_period_s == 0.2

    def test_overrides_return_copy(self):
        base = EngineConfig()
        base.with_overrides({"seed": 3})
        assert base.seed is None

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc:
            EngineConfig().with_overrides({"bogus": 1})
        assert exc.value.field == "bogus"

    def test_from_mapping_validates(self):
        assert from_mapping({"seed": 5}).seed == 5
        with pytest.raises(ConfigurationError):
            from_mapping({"smoothingAlpha": 3})

    def test_to_dict(self):
        d = EngineConfig().to_dict()
        assert d["history_capacity"] == 30
        assert d["retain_state"] is False


class TestLoadConfig:
    def test_none_gives_defaults(self):
        cfg = load_config(None)
        assert isinstance(cfg, MirrorConfig)
        assert cfg.network.http_port == 8080

    def test_missing_file(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            cfg = load_config(tmp_path / "nope.yaml")
        assert cfg.engine == EngineConfig()
        assert "not found" in caplog.text

    def test_yaml_sections(self, tmp_path):
        path = tmp_path / "mirror.yaml"
        path.write_text(
            "engine:\n"
            "  history_capacity: 12\n"
            "  emissionThreshold: 0.4\n"
            "  seed: 9\n"
            "classifier:\n"
            "  base_url: http://localhost:9000\n"
            "network:\n"
            "  http_port: 9090\n"
        )
        cfg = load_config(path)
        assert cfg.engine.history_capacity == 12
        assert cfg.engine.emission_threshold == 0.4
        assert cfg.engine.seed == 9
        assert cfg.classifier.base_url == "http://localhost:9000"
        assert cfg.network.http_port == 9090

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == MirrorConfig()

    def test_invalid_yaml_falls_back(self, tmp_path, caplog):
        path = tmp_path / "bad.yaml"
        path.write_text("engine: [unclosed\n")
        with caplog.at_level(logging.WARNING):
            cfg = load_config(path)
        assert cfg == MirrorConfig()
        assert "config load error" in caplog.text

    def test_unknown_engine_option_raises(self, tmp_path):
        path = tmp_path / "typo.yaml"
        path.write_text("engine:\n  histroy_capacity: 5\n")
        with pytest.raises(ConfigurationError):
            load_config(path)
