"""Token swap conversion service."""

__version__ = "0.1.0"
