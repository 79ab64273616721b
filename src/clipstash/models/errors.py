class StorageError(Exception):
    """Base class for history persistence failures."""


class InitFailed(StorageError):
    """The history database could not be opened or created."""


class WriteFailed(StorageError):
    """An insert, update or delete did not complete; state is unchanged."""


class ReadFailed(StorageError):
    """A query failed. Callers facing the UI degrade this to an empty result."""
