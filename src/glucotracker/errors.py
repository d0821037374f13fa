"""Exception hierarchy for glucotracker."""

from __future__ import annotations


class GlucoTrackerError(Exception):
    """Base class for every error raised by the package."""


class InvalidReading(GlucoTrackerError, ValueError):
    """A glucose value is absent, non-numeric or non-finite."""


class AuthError(GlucoTrackerError):
    """Authentication or session failure."""


class ExportError(GlucoTrackerError):
    """Nothing could be exported."""
