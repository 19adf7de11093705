"""Parley: a real-time message, presence and typing broker."""

__version__ = "0.1.0"
