"""Shared helpers: time conversion, periodic timers, the event bus and HTTP responses."""
