"""Guided anxiety-relief exercises: session engine, persistence and analytics."""

__version__ = "0.1.0"
