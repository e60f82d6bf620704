"""A Nostr relay with in-memory ring buffers for ephemeral events and SQLite storage."""

__version__ = "0.1.0"