"""eremos: run lifecycle and combat outcome engine for extraction runs."""

__version__ = "0.1.0"
