"""jobctl: keep a fixed pool of worker processes alive under signal control."""

__version__ = "0.1.0"
