"""Relay natural-language agent replies into filesystem commands."""

__version__ = "0.1.0"
