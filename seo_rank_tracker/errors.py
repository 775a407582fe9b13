from __future__ import annotations


class RankTrackerError(Exception):
    """Base class for rank tracker failures."""


class SourceFetchError(RankTrackerError, RuntimeError):
    """The row source failed or timed out while paginating."""


class MalformedInputError(RankTrackerError, ValueError):
    """Snapshot payload does not have the expected top-level shape."""


class InvalidParameterError(RankTrackerError, ValueError):
    """A component received a parameter outside its accepted range."""
