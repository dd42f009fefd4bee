"""Staybook - reservation consistency engine for short-stay rentals."""

__version__ = "0.1.0"
