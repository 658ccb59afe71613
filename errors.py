class PagilaError(Exception):
    pass

class DatabaseConnectionError(PagilaError, ConnectionError):
    """Couldn't open (or keep) the connection pool. Nothing else should run after this."""

class SchemaMismatchError(PagilaError):
    """A mapped table/column or a relation's join column doesn't exist."""

    def __init__(self, message, missing=None):
        super().__init__(message)
        self.missing = list(missing or [])

class QueryError(PagilaError):
    """
    Raised for queries that can't be built (unknown column, bad operator)
    or that the database rejected. When the database is the one complaining
    the original SQLAlchemy exception is kept on .orig
    """

    def __init__(self, message, orig=None):
        super().__init__(message)
        self.orig = orig

class ValidationError(PagilaError, ValueError):
    pass

class NotFoundError(PagilaError, LookupError):
    pass
