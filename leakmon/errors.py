"""Exceptions raised by the leak monitor."""

from __future__ import annotations

from typing import Optional


class LeakMonitorError(Exception):
    """Base exception for the leak monitor."""


class ConfigError(LeakMonitorError):
    """Invalid or missing configuration. Fatal at construction."""


class FetchError(LeakMonitorError):
    """Telemetry could not be retrieved from the device.

    Used directly for malformed or partial transfers; the subclasses cover
    connection, status and timeout failures.
    """

    kind = "transfer"


class FetchConnectionError(FetchError):
    kind = "connection"


class FetchTimeout(FetchError):
    kind = "timeout"


class FetchStatusError(FetchError):
    kind = "status"

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Request failed. Status code: {status_code}")
