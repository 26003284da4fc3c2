"""Custom exception hierarchy for the unconference package."""

from __future__ import annotations


class UnconferenceError(Exception):
    """Base error for all assignment related exceptions."""


class ValidationError(UnconferenceError):
    """Raised when input data cannot be reconciled into a seating plan."""


class EventNotFoundError(UnconferenceError):
    """Raised when generation is requested for an unknown event."""


class AutoAssignmentDisabledError(UnconferenceError):
    """Raised when the event does not allow automatic assignment."""
