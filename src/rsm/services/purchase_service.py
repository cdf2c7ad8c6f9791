from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from rsm.domain.errors import BackendError, NotFoundError, ValidationError
from rsm.domain.models import Product
from rsm.formatting import round_number
from rsm.repositories.contracts import BackendRepository
from rsm.repositories.supabase_repo import product_from_row

log = logging.getLogger(__name__)

FALLBACK_MARKUP_PERCENT = 50.0


@dataclass(frozen=True)
class PurchaseReceipt:
    product_id: str
    quantity: int
    unit_cost: int
    suggested_price: int
    created_product: bool = False


def unit_cost_from_total(total_amount: int, quantity: int) -> int:
    if quantity == 0:
        return 0
    return round_number(total_amount / quantity)


def suggested_price(unit_cost: float, markup_percent: float) -> int:
    return round_number(unit_cost * (1 + markup_percent / 100))


class PurchaseService:
    def __init__(self, repo: BackendRepository):
        self.repo = repo

    def _markup_for(self, product: Optional[Product]) -> float:
        if product is not None and product.markup_percent is not None:
            return float(product.markup_percent)
        settings = self.repo.get_settings()
        if settings is not None:
            return float(settings.default_markup_percent)
        return FALLBACK_MARKUP_PERCENT

    def create_product(self, name: str, unit: str = "", last_purchase_price: float = 0) -> Product:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Product name is required.")
        result = self.repo.insert_product({
            "name": name,
            "unit": unit or "cái",
            "last_purchase_price": last_purchase_price,
            "active": True,
        })
        if not result.success or not result.data:
            raise BackendError(result.error or "Product insert returned no row.")
        log.info("product_created name=%s", name)
        return product_from_row(result.data)

    def record_purchase(
        self,
        quantity: int,
        total_amount: int,
        on: date,
        product_id: Optional[str] = None,
        new_product_name: Optional[str] = None,
        supplier: Optional[str] = None,
        note: Optional[str] = None,
    ) -> PurchaseReceipt:
        """
        The form captures the line total; the unit cost is derived from it:
          unit_cost = round(total / qty), suggested = round(unit_cost * (1 + markup/100))
        """
        quantity = int(quantity)
        total_amount = int(total_amount)
        if quantity <= 0 or total_amount <= 0:
            raise ValidationError("Quantity and total amount are required.")

        unit_cost = unit_cost_from_total(total_amount, quantity)
        created = False
        if product_id:
            product = self.repo.get_product(product_id)
            if not product:
                raise NotFoundError("Product not found.")
        elif new_product_name and new_product_name.strip():
            product = self.create_product(new_product_name, last_purchase_price=unit_cost)
            created = True
        else:
            raise ValidationError("Select a product or enter a new product name.")

        price = suggested_price(unit_cost, self._markup_for(product))
        result = self.repo.insert_purchase({
            "product_id": product.id,
            "date": on,
            "quantity": quantity,
            "unit_cost": unit_cost,
            "suggested_price": price,
            "supplier": supplier or None,
            "note": note or None,
        })
        if not result.success:
            raise BackendError(result.error or "Purchase insert failed.")

        updated = self.repo.update_product(product.id, {"last_purchase_price": unit_cost})
        if not updated.success:
            log.error("last_price_update_failed product_id=%s error=%s", product.id, updated.error)

        log.info("purchase_created product_id=%s qty=%s unit_cost=%s", product.id, quantity, unit_cost)
        return PurchaseReceipt(
            product_id=product.id,
            quantity=quantity,
            unit_cost=unit_cost,
            suggested_price=price,
            created_product=created,
        )
