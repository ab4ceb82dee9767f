"""
Configuration management for sketchfrag.

Loads YAML configuration with sensible defaults for the fitters and the
fragmentation search.
"""

import os
from dataclasses import dataclass, field

import yaml


@dataclass
class EllipseConfig:
    """Configuration for the direct least-squares ellipse fitter."""
    min_points: int = 6
    arc_samples: int = 50  # points generated around the fitted conic
    pivot_epsilon: float = 1e-19
    zero_eigenvalue: float = 1e-19
    regularization: float = 1e-12  # relative lift of the last pivot for exactly-conic samples
    normalize: bool = True


@dataclass
class SearchConfig:
    """Configuration for the dynamic-programming search."""
    time_budget_s: float = None
    cache_fits: bool = True


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class FragmentConfig:
    """Complete fragmentation configuration."""
    ellipse: EllipseConfig = field(default_factory=EllipseConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)


SECTIONS = ("ellipse", "search", "tracing")


def load_config(config_path=None):
    """
    Load configuration from YAML file.
    
    Falls back to defaults for any missing values.
    """
    config = FragmentConfig()
    
    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}
        
        config = _merge_config(config, yaml_data)
    
    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass."""
    for section in SECTIONS:
        values = yaml_data.get(section) or {}
        target = getattr(config, section)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)
    
    if config.ellipse.min_points < 6:
        config.ellipse.min_points = 6
    
    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    config = FragmentConfig()
    
    yaml_data = {
        "ellipse": {
            "min_points": config.ellipse.min_points,
            "arc_samples": config.ellipse.arc_samples,
            "pivot_epsilon": config.ellipse.pivot_epsilon,
            "zero_eigenvalue": config.ellipse.zero_eigenvalue,
            "regularization": config.ellipse.regularization,
            "normalize": config.ellipse.normalize,
        },
        "search": {
            "time_budget_s": config.search.time_budget_s,
            "cache_fits": config.search.cache_fits,
        },
        "tracing": {
            "enabled": config.tracing.enabled,
            "level": config.tracing.level,
        },
    }
    
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
