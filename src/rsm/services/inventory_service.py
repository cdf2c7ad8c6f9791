from __future__ import annotations

from typing import Optional

from rsm.domain import aggregation
from rsm.domain.errors import NotFoundError, ValidationError
from rsm.domain.models import HistoryRecord, InventoryItem
from rsm.repositories.contracts import BackendRepository
from rsm.services.parallel import fetch_all


class InventoryService:
    def __init__(self, repo: BackendRepository):
        self.repo = repo

    def _default_threshold(self) -> int:
        settings = self.repo.get_settings()
        return settings.default_alert_threshold if settings else aggregation.DEFAULT_ALERT_THRESHOLD

    def stock_levels(self) -> dict[str, int]:
        """Full-history stock per product id, unclamped."""
        data = fetch_all({
            "purchases": lambda: self.repo.list_purchases(),
            "sales": lambda: self.repo.list_sales(),
        })
        return aggregation.inventory_map(data["purchases"], data["sales"])

    def stock_for(self, product_id: str) -> int:
        return self.stock_levels().get(str(product_id), 0)

    def inventory_list(self, search: Optional[str] = None) -> list[InventoryItem]:
        data = fetch_all({
            "products": lambda: self.repo.list_products(active_only=True),
            "purchases": lambda: self.repo.list_purchases(),
            "sales": lambda: self.repo.list_sales(),
            "threshold": self._default_threshold,
        })
        items = aggregation.inventory_items(data["products"], data["purchases"], data["sales"], data["threshold"])
        if search:
            needle = search.strip().lower()
            items = [it for it in items if needle in it.product.name.lower()]
        return aggregation.sort_by_status(items)

    def product_history(self, product_id: str, year: Optional[int] = None, month: Optional[int] = None) -> list[HistoryRecord]:
        if month is not None and not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12.")
        if not self.repo.get_product(product_id):
            raise NotFoundError("Product not found.")
        data = fetch_all({
            "purchases": lambda: self.repo.list_purchases_for_product(product_id),
            "sales": lambda: self.repo.list_sales_for_product(product_id),
        })
        return aggregation.product_history(data["purchases"], data["sales"], year=year, month=month)
