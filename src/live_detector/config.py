"""
Configuration management using Pydantic for validation and type checking.
"""

import os
import json
import yaml
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigLoadError


class ModelConfig(BaseModel):
    """Detector configuration shipped alongside the exported model."""
    input_size: int = Field(default=640, gt=0, description="Square model input size")
    num_classes: int = Field(gt=0, description="Number of classes")
    class_names: List[str] = Field(description="Class names ordered by class id")
    confidence_threshold: float = Field(
        default=0.5, gt=0.0, lt=1.0, description="Minimum class score"
    )
    iou_threshold: float = Field(
        default=0.45, gt=0.0, le=1.0, description="NMS IoU threshold"
    )

    @model_validator(mode="after")
    def check_class_names(self) -> "ModelConfig":
        """Every class id must have a name."""
        if len(self.class_names) != self.num_classes:
            raise ValueError(
                f"class_names has {len(self.class_names)} entries, "
                f"expected num_classes={self.num_classes}"
            )
        return self


class VideoConfig(BaseModel):
    """Video capture configuration."""
    device: str = Field(default="/dev/video0", description="Video device path, index, file or URL")
    width: int = Field(default=1280, ge=320, le=3840, description="Capture width")
    height: int = Field(default=720, ge=240, le=2160, description="Capture height")
    fps: int = Field(default=30, ge=1, le=60, description="Capture FPS")


class ModelPathsConfig(BaseModel):
    """Locations of the model resources and runtime options."""
    model_config = ConfigDict(protected_namespaces=())

    model_path: str = Field(
        default="/opt/live-detector/models/model.onnx",
        description="Path to ONNX model file"
    )
    config_path: str = Field(
        default="/opt/live-detector/models/model_config.json",
        description="Path to model config JSON"
    )
    providers: Optional[List[str]] = Field(
        default=None, description="ONNX Runtime execution providers"
    )


class SchedulerConfig(BaseModel):
    """Frame scheduler configuration."""
    tick_interval: float = Field(
        default=0.005, ge=0.0, le=1.0, description="Seconds between scheduler ticks"
    )
    cycle_timeout: Optional[float] = Field(
        default=None, gt=0.0, description="Abandon inference after this many seconds"
    )


class StreamConfig(BaseModel):
    """Streaming server configuration."""
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8080, ge=1024, le=65535, description="Server port")
    jpeg_quality: int = Field(
        default=80, ge=1, le=100, description="JPEG compression quality"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid logging level. Must be one of {valid_levels}")
        return v


class Config(BaseModel):
    """Main configuration class."""
    video: VideoConfig = Field(default_factory=VideoConfig)
    model: ModelPathsConfig = Field(default_factory=ModelPathsConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file with sensible defaults.

    Args:
        config_path: Path to configuration file. If None, uses default location.

    Returns:
        Config object with loaded settings.

    Raises:
        ConfigLoadError: If the file exists but cannot be parsed or validated.
    """
    # Default config path
    if config_path is None:
        config_path = "/etc/live-detector/config.yaml"

    # If config file doesn't exist, use defaults
    if not os.path.exists(config_path):
        return Config()

    try:
        with open(config_path, 'r') as f:
            config_dict = yaml.safe_load(f)

        # Handle empty file
        if config_dict is None:
            return Config()

        return Config(**config_dict)
    except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
        raise ConfigLoadError(f"Failed to load configuration from {config_path}: {e}") from e


def load_model_config(config_path: str) -> ModelConfig:
    """
    Load the model config JSON document.

    Unlike the application config there are no defaults to fall back on:
    detection is impossible without class names and thresholds.

    Raises:
        ConfigLoadError: If the file is missing, malformed or invalid.
    """
    try:
        with open(config_path, 'r') as f:
            config_dict = json.load(f)
        return ModelConfig.model_validate(config_dict)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ConfigLoadError(f"Failed to load model config from {config_path}: {e}") from e


def save_example_config(output_path: str) -> None:
    """
    Save an example configuration file with comments.

    Args:
        output_path: Where to save the example config.
    """
    example_yaml = """# Video capture settings
video:
  device: "/dev/video0"  # V4L2 device path, camera index, video file or stream URL
  width: 1280            # Capture width in pixels
  height: 720            # Capture height in pixels
  fps: 30                # Frames per second

# Model resources
model:
  model_path: "/opt/live-detector/models/model.onnx"          # Exported ONNX model
  config_path: "/opt/live-detector/models/model_config.json"  # Class names and thresholds
  # providers: ["CPUExecutionProvider"]                        # ONNX Runtime providers

# Frame scheduler
scheduler:
  tick_interval: 0.005   # Seconds between scheduler ticks
  # cycle_timeout: 2.0   # Abandon an inference call after this many seconds

# Streaming settings
stream:
  host: "0.0.0.0"      # Bind to all interfaces
  port: 8080           # HTTP server port
  jpeg_quality: 80     # JPEG compression quality (1-100)

# Logging
logging:
  level: "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
"""

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        f.write(example_yaml)
