"""Version information (kept free of heavy imports)."""

__version__ = "0.1.0"
