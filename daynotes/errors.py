from __future__ import annotations


class StoreError(Exception):
    """Base class for every failure the note store reports to its caller."""


class StoreUnavailable(StoreError):
    """The store could not be opened: wrong key, corrupt file, disk or schema error."""


class KeyUnavailable(StoreUnavailable):
    """Neither key backend could produce or persist the encryption key."""


class QueryFailed(StoreError):
    pass


class StoreCorrupted(QueryFailed):
    """More than one note claims the same calendar day."""


class WriteFailed(StoreError):
    pass
