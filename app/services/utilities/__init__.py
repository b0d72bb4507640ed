"""Utility services backed by external APIs."""
