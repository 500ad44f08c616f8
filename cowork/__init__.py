"""Cowork - terminal client for driving agent sessions."""

__version__ = "0.1.0"
