"""Exception types shared by the reconciliation utilities."""


class MalformedRecordError(ValueError):
    """Incoming row is missing a required field (the mountain name)."""


class StoreError(Exception):
    """A record store operation failed for a single record."""


class CorpusUnavailableError(StoreError):
    """The existing corpus could not be read; the batch cannot start."""
