"""
Tests for configuration loading.
"""

import json

import pytest
from pydantic import ValidationError

from live_detector.config import (
    Config,
    ModelConfig,
    load_config,
    load_model_config,
    save_example_config,
)
from live_detector.errors import ConfigLoadError


@pytest.fixture
def model_config_dict():
    return {
        "input_size": 640,
        "num_classes": 2,
        "class_names": ["mangoTree", "notMangoTree"],
        "confidence_threshold": 0.5,
        "iou_threshold": 0.45,
    }


class TestModelConfig:
    def test_valid(self, model_config_dict):
        config = ModelConfig(**model_config_dict)
        assert config.class_names[1] == "notMangoTree"

    def test_class_name_count_must_match(self, model_config_dict):
        model_config_dict["num_classes"] = 3
        with pytest.raises(ValidationError):
            ModelConfig(**model_config_dict)

    @pytest.mark.parametrize("value", [0.0, 1.0, -0.1])
    def test_confidence_threshold_open_interval(self, model_config_dict, value):
        model_config_dict["confidence_threshold"] = value
        with pytest.raises(ValidationError):
            ModelConfig(**model_config_dict)

    def test_iou_threshold_may_be_one(self, model_config_dict):
        model_config_dict["iou_threshold"] = 1.0
        assert ModelConfig(**model_config_dict).iou_threshold == 1.0

    def test_iou_threshold_zero_rejected(self, model_config_dict):
        model_config_dict["iou_threshold"] = 0.0
        with pytest.raises(ValidationError):
            ModelConfig(**model_config_dict)


class TestLoadModelConfig:
    def test_loads_json(self, tmp_path, model_config_dict):
        path = tmp_path / "model_config.json"
        path.write_text(json.dumps(model_config_dict))

        config = load_model_config(str(path))
        assert config.input_size == 640
        assert config.iou_threshold == 0.45

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError):
            load_model_config(str(tmp_path / "missing.json"))

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "model_config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigLoadError):
            load_model_config(str(path))

    def test_invalid_values(self, tmp_path, model_config_dict):
        model_config_dict["class_names"] = ["only-one"]
        path = tmp_path / "model_config.json"
        path.write_text(json.dumps(model_config_dict))
        with pytest.raises(ConfigLoadError):
            load_model_config(str(path))


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "missing.yaml"))
        assert config == Config()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == Config()

    def test_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "video:\n"
            "  device: '0'\n"
            "model:\n"
            "  model_path: /models/trees.onnx\n"
            "scheduler:\n"
            "  cycle_timeout: 2.5\n"
            "logging:\n"
            "  level: debug\n"
        )
        config = load_config(str(path))

        assert config.video.device == "0"
        assert config.model.model_path == "/models/trees.onnx"
        assert config.scheduler.cycle_timeout == 2.5
        assert config.scheduler.tick_interval == 0.005
        assert config.logging.level == "DEBUG"

    def test_invalid_level(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("logging:\n  level: LOUD\n")
        with pytest.raises(ConfigLoadError):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("video: [unclosed\n")
        with pytest.raises(ConfigLoadError):
            load_config(str(path))

    def test_example_config_loads(self, tmp_path):
        path = tmp_path / "etc" / "config.yaml"
        save_example_config(str(path))

        config = load_config(str(path))
        assert config.stream.port == 8080
        assert config.model.config_path.endswith("model_config.json")
