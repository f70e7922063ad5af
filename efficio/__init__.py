"""Efficio: local-first sync for tasks, habits and time blocks."""

__version__ = "0.3.0"
