class QuiverError(RuntimeError):
    """Base class for errors raised by the vector database."""

    pass


class LoadError(QuiverError):
    """Raised when the word-vector table is missing or cannot be read.

    This is fatal to service startup; nothing retries it.
    """

    pass


class PersistenceError(QuiverError):
    """Raised when the snapshot file cannot be read, parsed or written.

    On save the in-memory change has already been applied, so this only reports
    that the change is not durable. It never undoes the mutation.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class MissingConfigError(QuiverError):
    """Raised when required configuration (environment variables) is missing.

    This allows callers to catch configuration-related errors explicitly instead
    of the process exiting abruptly.
    """

    pass
