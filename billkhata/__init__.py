"""Shared-room finances: bills, meals, deposits and expenses for one khata."""

__version__ = "0.1.0"
