"""Cliniks Academy webhook dispatch and notification service."""

__version__ = "0.1.0"
