"""Outbound-message monitoring and admission control."""

__version__ = "0.1.0"
