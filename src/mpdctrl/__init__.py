"""Async client core for the Music Player Daemon (MPD) protocol."""

__version__ = "0.1.0"
