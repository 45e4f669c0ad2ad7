"""Error types raised by the mpe core."""

from __future__ import annotations


class MPEError(Exception):
    """Base class for all mpe errors."""


class NotFoundError(MPEError, ValueError):
    """A referenced prompt, version, comment, template or library does not exist."""


class InvalidInputError(MPEError, ValueError):
    """A required field is missing or has the wrong type or enum value."""


class VersionConflictError(MPEError):
    """Another writer appended the same version to a prompt first."""


class ScoringError(MPEError):
    """A scoring strategy returned a value outside [0, 1]."""
