"""Support case staleness reporting."""

__version__ = "0.1.0"
