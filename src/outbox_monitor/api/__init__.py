"""HTTP API for the outbox monitor."""
