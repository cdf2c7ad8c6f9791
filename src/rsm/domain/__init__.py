from .models import Product, PurchaseEntry, SaleEntry, AppSettings, TransactionRow
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    ConfigurationError,
    BackendError,
    SheetsError,
)

__all__ = [
    "Product",
    "PurchaseEntry",
    "SaleEntry",
    "AppSettings",
    "TransactionRow",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "ConfigurationError",
    "BackendError",
    "SheetsError",
]
