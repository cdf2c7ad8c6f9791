class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InsufficientStockError(AppError):
    pass


class ConfigurationError(AppError):
    """Missing credentials or environment values. Always fatal."""


class BackendError(AppError):
    pass


class SheetsError(AppError):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
