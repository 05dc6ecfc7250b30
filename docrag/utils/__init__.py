"""Shared utilities: errors, structured logging, concurrency and vector math."""
