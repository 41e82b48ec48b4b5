# path: graftrack-api/graftrack/errors.py

"""Error taxonomy shared by the map engine, the API client and the store."""

from __future__ import annotations

from typing import Dict, Optional


class GrafTrackError(Exception):
    """Base class. ``notice`` is the short text shown to the user."""

    notice = "Something went wrong"

    def __init__(self, message: str = "", notice: Optional[str] = None):
        super().__init__(message or self.notice)
        if notice is not None:
            self.notice = notice


class PermissionDenied(GrafTrackError):
    """Motion sensor or geolocation access refused. Never fatal."""

    notice = "Permission Denied"


class ValidationError(GrafTrackError):
    """Missing required field or out-of-range value; blocks submission."""

    notice = "Please check the highlighted fields"

    def __init__(self, message: str = "", field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message or "Invalid data")
        self.field_errors: Dict[str, str] = dict(field_errors or {})


class NetworkFailure(GrafTrackError):
    """Create/delete/upload call failed in transit. Safe to retry manually."""

    notice = "Network error. Please try again."
    retryable = True


class NotFound(GrafTrackError):
    """The entity has already been removed."""

    notice = "Already removed"
