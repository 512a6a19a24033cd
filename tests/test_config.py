"""Tests for configuration loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from lantern.config import DEFAULT_MARKER_PATHS, LanternConfig, load_config

if TYPE_CHECKING:
    from pathlib import Path


def test_default_config(tmp_path: Path) -> None:
    """Loading with no file should produce valid defaults."""
    config = load_config(tmp_path / "missing.yaml")
    assert config.classification.confidence_threshold == 0.75
    assert config.sampling.pointer_cap == 100
    assert config.sampling.scroll_cap == 50
    assert config.server.port == 8080
    assert config.exploration.marker_paths == DEFAULT_MARKER_PATHS


def test_load_config_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "lantern.yaml"
    path.write_text(
        """
classification:
  confidence_threshold: 0.6
sampling:
  pointer_cap: 20
exploration:
  reference_sequences:
    - ["/shop", "/cart"]
server:
  port: 9090
logging:
  level: debug
"""
    )
    config = load_config(path)
    assert config.classification.confidence_threshold == 0.6
    assert config.sampling.pointer_cap == 20
    assert config.sampling.scroll_cap == 50
    assert config.exploration.reference_sequences == [["/shop", "/cart"]]
    assert config.server.port == 9090
    assert config.logging.level == "debug"


def test_empty_yaml_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "lantern.yaml"
    path.write_text("")
    assert load_config(path) == LanternConfig()


def test_profile_override_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "lantern.yaml"
    path.write_text(
        """
profiles:
  scanner:
    navigation_speed: {min_ms: 0, max_ms: 400}
    natural_movement: false
    pause_points: false
    exploration_pattern: exhaustive
    programmatic_calls: true
    return_frequency: none
    session_duration: {min_ms: 1000, max_ms: 300000}
    path_entropy: low
    focus_pattern: none
"""
    )
    table = load_config(path).profile_table()
    assert list(table) == ["human", "programmatic", "mixed", "scanner"]
    assert table["scanner"].navigation_speed.max_ms == 400


def test_empty_reference_sequence_rejected() -> None:
    with pytest.raises(ValidationError):
        LanternConfig.model_validate({"exploration": {"reference_sequences": [[]]}})


def test_negative_threshold_rejected() -> None:
    with pytest.raises(ValidationError):
        LanternConfig.model_validate({"classification": {"confidence_threshold": -0.1}})
