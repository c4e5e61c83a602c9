"""Personal task priority manager with dense rank ordering."""

__version__ = "0.1.0"
