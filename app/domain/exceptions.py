"""Exceptions raised by EcoSterile.

Expected service failures (no session, unknown crop, storage errors) are
returned as ``OperationResult`` error codes rather than raised. Exceptions are
kept for bad caller input, catalog lookups and broken configuration.
``app.utils.http.safe_route`` turns them into JSON responses using
``http_status``.

::

    EcoSterileError (500)
    ├── ValidationError     (400, bad query or body value)
    ├── NotFoundError       (404, unknown catalog entry)
    └── ConfigurationError  (500, invalid settings or missing wiring)
"""

from __future__ import annotations


class EcoSterileError(Exception):
    """Base class. ``detail`` is structured context returned with 4xx errors."""

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


class ValidationError(EcoSterileError):
    http_status: int = 400


class NotFoundError(EcoSterileError):
    http_status: int = 404


class ConfigurationError(EcoSterileError):
    """Settings that cannot run: bad environment values, timings or bands."""

    http_status: int = 500
