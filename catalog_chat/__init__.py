"""Conversational access to an ingested product catalog."""

__version__ = "0.1.0"
