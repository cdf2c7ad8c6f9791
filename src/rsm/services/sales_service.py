from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from rsm.domain.errors import BackendError, InsufficientStockError, NotFoundError, ValidationError
from rsm.domain.models import DEFAULT_CUSTOMER
from rsm.formatting import round_number
from rsm.repositories.contracts import BackendRepository

log = logging.getLogger("rsm.sales")


@dataclass(frozen=True)
class SalePreview:
    line_total: int
    profit: int
    profit_percent: int
    remaining_stock: int


class SalesService:
    def __init__(self, repo: BackendRepository, inventory_service):
        self.repo = repo
        self.inventory = inventory_service

    def suggested_price(self, product_id: str) -> Optional[float]:
        return self.repo.latest_suggested_price(product_id)

    def preview(self, product_id: str, quantity: int, unit_price: int) -> SalePreview:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found.")
        cost = float(product.last_purchase_price)
        profit = (unit_price - cost) * quantity
        percent = profit / (cost * quantity) * 100 if cost > 0 and quantity > 0 else 0
        return SalePreview(
            line_total=round_number(quantity * unit_price),
            profit=round_number(profit),
            profit_percent=round_number(percent),
            remaining_stock=self.inventory.stock_for(product_id) - quantity,
        )

    def record_sale(
        self,
        product_id: str,
        quantity: int,
        unit_price: int,
        on: date,
        customer: Optional[str] = DEFAULT_CUSTOMER,
        note: Optional[str] = None,
    ) -> str:
        quantity = int(quantity)
        unit_price = int(unit_price)
        if not product_id or quantity <= 0 or unit_price <= 0:
            raise ValidationError("Product, quantity and sale price are required.")

        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found.")

        available = self.inventory.stock_for(product_id)
        if quantity > available:
            raise InsufficientStockError(
                f"Not enough stock for {product.name}. Available: {available} {product.unit or 'cái'}"
            )

        # cost is frozen at sale time; later purchases never rewrite it
        result = self.repo.insert_sale({
            "product_id": product.id,
            "date": on,
            "quantity": quantity,
            "unit_cost": product.last_purchase_price or 0,
            "unit_price": unit_price,
            "customer": customer,
            "note": note or None,
        })
        if not result.success:
            raise BackendError(result.error or "Sale insert failed.")

        sale_id = str((result.data or {}).get("id", ""))
        log.info("sale_created sale_id=%s product_id=%s qty=%s price=%s", sale_id, product.id, quantity, unit_price)
        return sale_id
