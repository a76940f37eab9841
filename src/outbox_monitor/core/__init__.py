"""Core configuration for the outbox monitor."""
