"""Application-level exceptions."""


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, code: str = "APP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when a transaction or input is malformed or impossible (e.g. oversell)."""

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}", code="NOT_FOUND")


class DataUnavailableError(AppError):
    """Raised when external price data is missing and no cached fallback exists."""

    def __init__(self, message: str):
        super().__init__(message, code="DATA_UNAVAILABLE")


class ConcurrencyConflict(AppError):
    """Raised when a holding's version does not match the version the caller read."""

    def __init__(self, holding_id: str, expected: int, actual: int):
        super().__init__(
            f"Holding {holding_id} was modified: expected version {expected}, found {actual}",
            code="CONCURRENCY_CONFLICT",
        )


class OperationCancelled(AppError):
    """Raised when an aggregation request is aborted before all holdings were computed."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message, code="CANCELLED")
