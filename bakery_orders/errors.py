"""Exceptions raised by the order pipeline.

Each class maps to one HTTP status in ``app.ERROR_STATUS_CODES``.
"""


class BakeryOrdersError(Exception):
    """Base exception for all bakery_orders errors."""

    # shown to the caller in place of str(exc) when set
    public_message: str | None = None


class ValidationError(BakeryOrdersError):
    """Raised when a request breaks one or more field constraints."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class OrderNotFoundError(BakeryOrdersError):
    """Raised when an order number or id has no match."""

    def __init__(self, key: str | int, by: str = "number"):
        self.key = key
        self.by = by
        if by == "id":
            msg = f"Order not found: id {key}"
        else:
            msg = f"Order not found: {key}"
        super().__init__(msg)


class ConfigurationError(BakeryOrdersError):
    """Raised when required configuration or an external service is missing."""

    public_message = "Service is not configured. Please contact the store."


class PersistenceError(BakeryOrdersError):
    """Raised when a write fails part way through the pipeline.

    ``str(exc)`` carries the underlying cause for logs; callers only ever
    see ``public_message``.
    """

    public_message = "Could not complete the order. Please try again."

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        msg = f"{operation} failed"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class StorageTimeoutError(BakeryOrdersError):
    """Raised when the database did not answer in time. Safe to retry."""

    public_message = "The store is busy right now. Please try again in a moment."

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} timed out")


class OrderNumberConflictError(BakeryOrdersError):
    """Raised by a store when the generated order number is already taken."""

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order number already exists: {order_number}")


class SettingsUnavailableError(BakeryOrdersError):
    """Raised by a settings source that could not be read."""

    def __init__(self, cause: Exception | None = None):
        self.cause = cause
        super().__init__(f"Store settings unavailable: {cause}")
