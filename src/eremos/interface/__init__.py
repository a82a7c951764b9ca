"""Command-line interface for eremos."""

from .cli import main, build_parser, play_demo
from .config import Config, DEFAULT_CONFIG, load_config, save_config

__all__ = [
    "main",
    "build_parser",
    "play_demo",
    "Config",
    "DEFAULT_CONFIG",
    "load_config",
    "save_config",
]
