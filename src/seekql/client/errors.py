"""
Exception hierarchy for seekql

Every error raised by the client derives from SeekqlError, so callers can
catch the whole family at once or pick a specific kind:

- InvalidInputError  - malformed request, rejected before any I/O
- ConfigError        - bad collection/server configuration
- NotFoundError      - collection, database or row does not exist
- EmbeddingError     - embedding function missing or failing
- SerializationError - value could not be encoded or decoded
- SqlError           - backend rejected a statement
- BackendConnectionError - backend unreachable or connection lost
"""
from typing import Optional


class SeekqlError(Exception):
    """Base class for all seekql errors"""
    pass


class InvalidInputError(SeekqlError, ValueError):
    """Input shape or value is invalid (raised before any statement is sent)"""
    pass


class ConfigError(SeekqlError, ValueError):
    """Invalid configuration"""
    pass


class NotFoundError(SeekqlError, LookupError):
    """Requested object does not exist"""
    pass


class EmbeddingError(SeekqlError):
    """Embedding function is missing or failed to produce vectors"""
    pass


class SerializationError(SeekqlError, ValueError):
    """Value cannot be serialized to or deserialized from its wire format"""
    pass


class SqlError(SeekqlError):
    """
    Statement rejected by the backend.

    The backend message is passed through unchanged; ``code`` carries the
    server error number when one is known.
    """

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is not None:
            return f"({self.code}) {self.message}"
        return self.message


class BackendConnectionError(SeekqlError, ConnectionError):
    """Backend cannot be reached or the connection was lost"""
    pass
