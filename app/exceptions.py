class StoreError(Exception):
    """Base class for errors raised by the stores and the fulfillment engine."""
    pass


class NotFoundError(StoreError):
    """Exception raised when a referenced product or order doesn't exist."""
    pass


class ValidationError(StoreError):
    """Exception raised for missing product fields or a malformed cart."""
    pass


class EmptyOrderError(StoreError):
    """Exception raised when no requested line could be fulfilled."""
    pass


class StorageError(StoreError):
    """Exception raised when the underlying storage fails to read or write."""
    pass
