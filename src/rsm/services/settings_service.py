from __future__ import annotations

import logging
from typing import Any

from rsm.domain.errors import BackendError, NotFoundError, ValidationError
from rsm.domain.models import AppSettings, Product, SystemStats
from rsm.repositories.contracts import BackendRepository
from rsm.repositories.supabase_repo import PRODUCTS, PURCHASES, SALES
from rsm.services.parallel import fetch_all

log = logging.getLogger(__name__)

EDITABLE_SETTINGS = {"default_markup_percent", "default_alert_threshold", "auto_backup", "reminder_enabled"}
EDITABLE_PRODUCT_FIELDS = {"name", "unit", "last_purchase_price", "markup_percent", "alert_threshold", "active"}
# rough per-row footprint used for the storage estimate, in KB
_ROW_KB = 0.5


class SettingsService:
    def __init__(self, repo: BackendRepository):
        self.repo = repo

    def get_settings(self) -> AppSettings | None:
        return self.repo.get_settings()

    def update_settings(self, updates: dict[str, Any]) -> None:
        unknown = set(updates) - EDITABLE_SETTINGS
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "default_markup_percent" in updates and float(updates["default_markup_percent"]) < 0:
            raise ValidationError("Markup must be >= 0.")
        if "default_alert_threshold" in updates and int(updates["default_alert_threshold"]) < 0:
            raise ValidationError("Alert threshold must be >= 0.")
        result = self.repo.update_settings(updates)
        if not result.success:
            raise BackendError(result.error or "Settings update failed.")
        log.info("settings_updated fields=%s", ",".join(sorted(updates)))

    def list_products(self, active_only: bool = False) -> list[Product]:
        return self.repo.list_products(active_only=active_only)

    def update_product(self, product_id: str, updates: dict[str, Any]) -> None:
        unknown = set(updates) - EDITABLE_PRODUCT_FIELDS
        if unknown:
            raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")
        if "name" in updates and not str(updates["name"] or "").strip():
            raise ValidationError("Product name is required.")
        if not self.repo.get_product(product_id):
            raise NotFoundError("Product not found.")
        result = self.repo.update_product(product_id, updates)
        if not result.success:
            raise BackendError(result.error or "Product update failed.")

    def toggle_product_active(self, product_id: str, active: bool) -> None:
        # products are soft-deactivated, never deleted
        self.update_product(product_id, {"active": bool(active)})

    def system_stats(self) -> SystemStats:
        counts = fetch_all({
            "products": lambda: self.repo.count(PRODUCTS),
            "purchases": lambda: self.repo.count(PURCHASES),
            "sales": lambda: self.repo.count(SALES),
        })
        total_rows = counts["products"] + counts["purchases"] + counts["sales"]
        return SystemStats(
            products=counts["products"],
            purchases=counts["purchases"],
            sales=counts["sales"],
            storage_mb=total_rows * _ROW_KB / 1000,
        )
