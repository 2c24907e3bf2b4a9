"""Maintenance toolkit for the mountains catalog."""

__version__ = "0.1.0"
