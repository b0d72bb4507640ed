"""SQLite persistence for readings, pump logs and farm profiles."""
