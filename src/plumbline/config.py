"""
Configuration management for plumbline.

Loads YAML configuration with defaults tuned for vertical line detection.
"""

import os
from dataclasses import asdict, dataclass, field

import yaml


@dataclass
class EdgeConfig:
    """Configuration for resizing and Canny edge detection."""
    scale: float = 2.0  # gaussian sigma
    threshold: float = 4.0  # gradient magnitude per pixel
    gradient_gain: float = 8.0  # 3x3 sobel response per unit gradient
    resize_dimension: int = 1600


@dataclass
class LineConfig:
    """Configuration for tracing edge chains into raw lines."""
    length_threshold: float = 0.05  # fraction of the longest image side
    split_tolerance: float = 3.0
    straightness_tolerance: float = 3.0  # not below split_tolerance
    corner_trim: int = 6  # points dropped at each end of a split piece


@dataclass
class FilterConfig:
    """Configuration for fitted line filtering."""
    min_length: float = 20.0
    vertical_tolerance: float = 0.1  # sin(~5.7 deg)
    duplicate_distance: float = 80.0
    duplicate_angle: float = 0.05  # radians
    overshoot: float = 0.1


@dataclass
class RemapConfig:
    """Configuration for remapping non-rectilinear images."""
    width: int = 1600
    max_vfov: float = 100.0
    limited_vfov: float = 90.0
    mask_erode: int = 2
    fit_samples: int = 41


@dataclass
class ValidateConfig:
    """Configuration for the statistical validation of control points."""
    single_line_tolerance: float = 0.05
    merit_length_cap: float = 500.0


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class DebugConfig:
    """Configuration for debug artifact generation."""
    enabled: bool = False
    max_edge_scale: int = 1600


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""
    edges: EdgeConfig = field(default_factory=EdgeConfig)
    lines: LineConfig = field(default_factory=LineConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    remap: RemapConfig = field(default_factory=RemapConfig)
    validate: ValidateConfig = field(default_factory=ValidateConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)


SECTIONS = ("edges", "lines", "filter", "remap", "validate", "tracing", "debug")


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values.
    """
    config = PipelineConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass, ignoring unknown keys."""
    for section_name in SECTIONS:
        values = yaml_data.get(section_name)
        if not isinstance(values, dict):
            continue
        section = getattr(config, section_name)
        for key, value in values.items():
            if hasattr(section, key):
                setattr(section, key, value)

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    config = PipelineConfig()

    yaml_data = {name: asdict(getattr(config, name)) for name in SECTIONS}
    # runtime-only setting
    yaml_data["tracing"].pop("file_path", None)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
