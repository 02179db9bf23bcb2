"""Collaborative task board: ordered lists and cards behind a JSON API."""

__version__ = "1.0.0"
