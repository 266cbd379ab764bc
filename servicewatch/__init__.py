"""Uptime and TLS certificate monitoring engine."""

__version__ = "0.1.0"
