"""
User configuration persistence.

Stores settings like the saves directory, log level, and demo seed in a
JSON file next to the saves.
"""

import json
from pathlib import Path
from typing import TypedDict

from ..state.config import EngineConfig


class Config(TypedDict, total=False):
    """User configuration."""
    log_level: str  # DEBUG, INFO, WARNING
    default_seed: int | None  # None seeds from the clock
    show_hit_log: bool  # Show per-hit escape damage
    engine: EngineConfig  # Overrides for engine constants


DEFAULT_CONFIG: Config = {
    "log_level": "INFO",
    "default_seed": None,
    "show_hit_log": True,
    "engine": {},
}


def get_config_path(saves_dir: Path | str = "saves") -> Path:
    """Get path to config file."""
    return Path(saves_dir) / ".eremos_config.json"


def load_config(saves_dir: Path | str = "saves") -> Config:
    """Load config from file, or return defaults if not found."""
    path = get_config_path(saves_dir)

    if not path.exists():
        return DEFAULT_CONFIG.copy()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        config = DEFAULT_CONFIG.copy()
        config.update(saved)
        return config
    except (json.JSONDecodeError, OSError):
        return DEFAULT_CONFIG.copy()


def save_config(config: Config, saves_dir: Path | str = "saves") -> bool:
    """Save config to file. Returns True on success."""
    path = get_config_path(saves_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError:
        return False


def set_default_seed(seed: int | None, saves_dir: Path | str = "saves") -> None:
    """Save the demo seed preference."""
    config = load_config(saves_dir)
    config["default_seed"] = seed
    save_config(config, saves_dir)
