"""Exceptions raised by archive write paths.

Read paths catch these and return empty results; write paths let them
propagate to the caller.
"""


class ChatArchiveError(Exception):
    """Base class for archive errors."""

    pass


class StorageUnavailable(ChatArchiveError):
    """Raised when an archive file cannot be opened."""

    pass


class SchemaMissing(ChatArchiveError):
    """Raised when a table required by a write is absent from the archive."""

    pass
