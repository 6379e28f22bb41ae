"""Exceptions raised along the ingestion and lookup paths."""


class OrderHubError(Exception):
    """Base exception for all order service errors."""

    pass


class InvalidFormatError(OrderHubError):
    """Raised when a payload cannot be decoded into an order."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"invalid order payload: {reason}")


class MissingIdentifierError(OrderHubError):
    """Raised when an order has an empty order_uid."""

    def __init__(self):
        super().__init__("missing order_uid")


class StorageError(OrderHubError):
    """Raised when the durable store fails to read or write."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        msg = f"storage {operation} failed"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)
