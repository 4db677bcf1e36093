"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Optional

import yaml

from brain.migration import MigrationPaths

from .config_models import BrainConfig

# Env overrides, highest precedence
ENV_RHO_DIR = "RHO_DIR"
ENV_BRAIN_DIR = "RHO_BRAIN_DIR"
ENV_BRAIN_PATH = "RHO_BRAIN_PATH"


def find_config() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / "config.yaml",
        Path.home() / ".rho" / "config.yaml",
    ]
    for loc in locations:
        if loc.exists():
            return loc
    return None


def _apply_env(data: dict) -> dict:
    paths = dict(data.get("paths") or {})
    for env, key in ((ENV_RHO_DIR, "rho_dir"), (ENV_BRAIN_DIR, "brain_dir"), (ENV_BRAIN_PATH, "brain_path")):
        value = os.environ.get(env)
        if value:
            paths[key] = value
    if paths:
        data = {**data, "paths": paths}
    return data


def load_config_model(config_path: Optional[Path] = None) -> BrainConfig:
    """Load configuration as Pydantic model with validation."""
    base_config = {}

    path = config_path or find_config()
    if path and path.exists():
        try:
            with open(path) as f:
                base_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}")

    try:
        return BrainConfig.from_dict(_apply_env(base_config))
    except Exception as e:
        raise ValueError(f"Config validation failed: {e}")


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration as a plain dict. Use load_config_model() for typed access."""
    return load_config_model(config_path).to_dict()


def get_paths(config: BrainConfig) -> dict:
    """Get expanded paths from config."""
    p = config.paths
    return {
        "rho_dir": p.rho_dir,
        "brain_dir": p.brain_dir,
        "brain_path": p.brain_path,
        "log_file": p.log_file,
    }


def get_migration_paths(config: BrainConfig) -> MigrationPaths:
    p = config.paths
    return MigrationPaths.from_dirs(p.brain_path, p.brain_dir, p.rho_dir)
