from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

import requests

from rsm.config import load_backend_config, load_sheets_config
from rsm.repositories.supabase_repo import SupabaseRepository
from rsm.services.export_service import ExportService
from rsm.services.inventory_service import InventoryService
from rsm.services.operations_service import OperationsService
from rsm.services.purchase_service import PurchaseService
from rsm.services.reporting_service import ReportingService
from rsm.services.sales_service import SalesService
from rsm.services.settings_service import SettingsService
from rsm.services.sheets_client import GoogleSheetsClient
from rsm.services.sync_service import SyncService


@dataclass(frozen=True)
class AppContainer:
    repo: SupabaseRepository
    inventory: InventoryService
    purchases: PurchaseService
    sales: SalesService
    reporting: ReportingService
    settings: SettingsService
    sync: SyncService
    export: ExportService
    operations: OperationsService


def build_container(env: Optional[Mapping[str, str]] = None, session: Optional[requests.Session] = None) -> AppContainer:
    repo = SupabaseRepository(load_backend_config(env), session=session)

    # sheets credentials are resolved per sync so a missing key fails the sync, not startup
    def sheets_client() -> GoogleSheetsClient:
        return GoogleSheetsClient(load_sheets_config(env))

    inventory = InventoryService(repo)
    return AppContainer(
        repo=repo,
        inventory=inventory,
        purchases=PurchaseService(repo),
        sales=SalesService(repo, inventory),
        reporting=ReportingService(repo),
        settings=SettingsService(repo),
        sync=SyncService(repo, sheets_client),
        export=ExportService(repo),
        operations=OperationsService(repo),
    )
