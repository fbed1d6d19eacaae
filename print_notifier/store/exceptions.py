"""Job store exceptions.

All store errors inherit from PersistenceError so callers can catch them with
a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all job store errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialised or reached.

    Examples:
    - Invalid database URL
    - Database file not accessible
    - Store used before connect()
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when an update targets a record that does not exist.

    Lookups return None instead of raising this.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised on constraint violations (duplicate keys, NOT NULL, ...)."""

    pass
