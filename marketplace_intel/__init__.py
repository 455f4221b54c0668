"""Marketplace Intelligence & Automation Engine."""

__version__ = "1.0.0"
