"""Shared tools for eremos."""

from .rng import SeededRng

__all__ = ["SeededRng"]
