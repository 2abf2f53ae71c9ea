"""Error taxonomy shared by the scheduler, the store and the analytics engine."""

from __future__ import annotations


class QuietScoreError(Exception):
    """Base class for all quietscore failures."""


class PermissionDenied(QuietScoreError):
    """Capture permission was declined; monitoring does not start."""


class CaptureUnavailable(QuietScoreError):
    """The capture session could not be opened or read."""


class PersistenceFailure(QuietScoreError):
    """A storage backend operation failed."""


class ConfigurationInvalid(QuietScoreError, ValueError):
    """Configuration values are out of range or thresholds are not ordered."""
