"""Error taxonomy for the feed pipeline and the write-back API."""

from __future__ import annotations


class TransitError(Exception):
    """Base class for every error raised by the service."""


class FetchError(TransitError):
    """The realtime feed could not be retrieved."""


class DecodeError(TransitError):
    """The feed payload is not a valid FeedMessage."""


class CatalogError(TransitError):
    """The static stop catalog is malformed."""


class StorageUnavailable(TransitError):
    """The record store is not connected or the connection was lost."""


class StorageError(TransitError):
    """The record store rejected an operation."""


class ValidationError(TransitError):
    """A write-back request is missing required fields."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")
