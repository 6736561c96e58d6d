"""Dream Decor: a tile-based home decoration simulation engine."""

__all__ = ["__version__"]

__version__ = "0.1.0"
