from .inventory_service import InventoryService
from .sales_service import SalesService
from .purchase_service import PurchaseService
from .reporting_service import ReportingService
from .settings_service import SettingsService
from .sync_service import SyncService
from .export_service import ExportService
from .operations_service import OperationsService
from .sheets_client import GoogleSheetsClient

__all__ = [
    "InventoryService",
    "SalesService",
    "PurchaseService",
    "ReportingService",
    "SettingsService",
    "SyncService",
    "ExportService",
    "OperationsService",
    "GoogleSheetsClient",
]
