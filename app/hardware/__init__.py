"""Sensor board transport."""
