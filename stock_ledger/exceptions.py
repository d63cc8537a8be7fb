"""
Domain Exceptions
"""


class InvalidAmount(ValueError):
    """Raised when a price cannot be represented as an exact decimal amount."""


class StorageError(RuntimeError):
    """Raised when an import file cannot be stored, located or read."""


class ImportDispatchError(RuntimeError):
    """Raised when an import task cannot be sent to the queue."""


class RequestValidationFailed(Exception):
    """Raised by request dependencies when query or body input is invalid."""

    def __init__(self, errors: dict, message: str = None):
        self.errors = errors
        if message is None:
            first = next(iter(errors.values()), ["The given data was invalid."])
            message = first[0]
        self.message = message
        super().__init__(message)
