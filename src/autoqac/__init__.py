"""Automated xEdit Quick Auto Clean runner."""

__version__ = "0.4.0"
