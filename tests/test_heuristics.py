import pytest

from captcha_system.trajectory.heuristics import (DEFAULT_HEURISTICS,
                                                  HeuristicConfig,
                                                  load_heuristics)


def test_defaults():
    config = HeuristicConfig()
    assert config.min_points == 10
    assert config.max_avg_curvature == 45.0
    assert (config.min_avg_y_change, config.max_avg_y_change) == (0.1, 5.0)
    assert config.min_avg_velocity_change == 0.05
    assert (config.acceleration_ratio, config.deceleration_ratio) == (1.1, 0.9)
    assert config.max_repetition_rate == 0.1
    assert (config.trajectory_weight, config.velocity_weight, config.repetition_weight) == (0.3, 0.5, 0.2)
    assert config.pass_threshold == 0.5


def test_from_mapping_overrides_and_coerces():
    config = HeuristicConfig.from_mapping({"min_points": "12", "max_avg_curvature": 60})
    assert config.min_points == 12
    assert isinstance(config.min_points, int)
    assert config.max_avg_curvature == 60.0
    assert isinstance(config.max_avg_curvature, float)
    assert config.pass_threshold == 0.5


def test_from_mapping_rejects_unknown_keys():
    with pytest.raises(ValueError, match="max_speed"):
        HeuristicConfig.from_mapping({"max_speed": 3})


def test_from_mapping_empty():
    assert HeuristicConfig.from_mapping(None) == DEFAULT_HEURISTICS


def test_config_is_frozen():
    with pytest.raises(Exception):
        DEFAULT_HEURISTICS.pass_threshold = 0.1


def test_load_missing_file_returns_defaults(tmp_path):
    assert load_heuristics(None) == DEFAULT_HEURISTICS
    assert load_heuristics(str(tmp_path / "absent.yaml")) == DEFAULT_HEURISTICS


def test_load_flat_yaml(tmp_path):
    path = tmp_path / "heuristics.yaml"
    path.write_text("pass_threshold: 0.6\nvelocity_weight: 0.4\n", encoding="utf-8")
    config = load_heuristics(str(path))
    assert config.pass_threshold == 0.6
    assert config.velocity_weight == 0.4
    assert config.to_dict()["trajectory_weight"] == 0.3


def test_load_nested_yaml(tmp_path):
    path = tmp_path / "heuristics.yaml"
    path.write_text("heuristics:\n  min_points: 15\n", encoding="utf-8")
    assert load_heuristics(str(path)).min_points == 15


def test_load_rejects_non_mapping(tmp_path):
    path = tmp_path / "heuristics.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_heuristics(str(path))
