from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Protocol

from rsm.domain.models import AppSettings, Product, PurchaseEntry, SaleEntry


@dataclass(frozen=True)
class WriteResult:
    success: bool
    error: Optional[str] = None
    data: Optional[dict] = None


class BackendRepository(Protocol):
    def list_products(self, active_only: bool = True) -> list[Product]: ...
    def get_product(self, product_id: str) -> Optional[Product]: ...
    def list_purchases(self, start: Optional[date] = None, end: Optional[date] = None) -> list[PurchaseEntry]: ...
    def list_sales(self, start: Optional[date] = None, end: Optional[date] = None) -> list[SaleEntry]: ...
    def list_purchases_for_product(self, product_id: str) -> list[PurchaseEntry]: ...
    def list_sales_for_product(self, product_id: str) -> list[SaleEntry]: ...
    def latest_suggested_price(self, product_id: str) -> Optional[float]: ...
    def count(self, table: str) -> int: ...
    def probe_count(self, table: str) -> int: ...
    def get_settings(self) -> Optional[AppSettings]: ...
    def insert_product(self, values: dict[str, Any]) -> WriteResult: ...
    def update_product(self, product_id: str, values: dict[str, Any]) -> WriteResult: ...
    def insert_purchase(self, values: dict[str, Any]) -> WriteResult: ...
    def insert_sale(self, values: dict[str, Any]) -> WriteResult: ...
    def update_settings(self, values: dict[str, Any]) -> WriteResult: ...
