"""Lantern: behavioral archetype classification for anonymous web sessions."""

__version__ = "0.1.0"
