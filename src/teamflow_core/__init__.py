"""Teamflow Core - authorization and organizational hierarchy engine."""

__version__ = "1.0.0"
