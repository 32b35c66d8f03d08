"""Tests for CLI argument parsing."""

from __future__ import annotations

import pytest

from emotion_mirror.main import parse_args


def test_defaults() -> None:
    args = parse_args([])
    assert args.config is None
    assert args.source is None
    assert args.seed is None
    assert args.log_level == "INFO"


def test_overrides() -> None:
    args = parse_args(
        ["--source", "classifier", "--classifier-url", "http://cam:9000", "--seed", "3",
         "--http-port", "9100"]
    )
    assert args.source == "classifier"
    assert args.classifier_url == "http://cam:9000"
    assert args.seed == 3
    assert args.http_port == 9100


def test_rejects_unknown_source() -> None:
    with pytest.raises(SystemExit):
        parse_args(["--source", "tarot"])
