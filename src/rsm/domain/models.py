from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


PURCHASE_LABEL = "NHẬP"
SALE_LABEL = "BÁN"
DEFAULT_CUSTOMER = "Khách lẻ"


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    unit: str = ""
    last_purchase_price: float = 0.0
    markup_percent: Optional[float] = None
    alert_threshold: Optional[int] = None
    active: bool = True


@dataclass(frozen=True)
class PurchaseEntry:
    id: str
    date: date
    product_id: str
    quantity: int
    unit_cost: float
    suggested_price: float = 0.0
    supplier: Optional[str] = None
    note: Optional[str] = None
    product_name: str = ""
    product_unit: str = ""

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class SaleEntry:
    id: str
    date: date
    product_id: str
    quantity: int
    unit_cost: float
    unit_price: float
    customer: Optional[str] = None
    note: Optional[str] = None
    product_name: str = ""
    product_unit: str = ""

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class AppSettings:
    id: int = 1
    default_markup_percent: float = 50.0
    default_alert_threshold: int = 10
    auto_backup: bool = False
    reminder_enabled: bool = False
    last_sync_sheets: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class PeriodTotals:
    total_in: int
    total_out: int
    profit: int
    profit_rate: int


@dataclass(frozen=True)
class MonthlyTotals:
    month: int
    label: str
    total_in: int
    total_out: int
    profit: int


@dataclass(frozen=True)
class YearlyTotals:
    year: int
    total_in: int
    total_out: int
    profit: int
    growth_rate: int = 0


@dataclass(frozen=True)
class TopProduct:
    product_id: str
    product_name: str
    quantity: int
    revenue: int
    profit: int = 0


@dataclass(frozen=True)
class RecoveryItem:
    product_id: str
    product_name: str
    recovery_percent: int
    stock: int


@dataclass(frozen=True)
class CostShare:
    product_id: str
    product_name: str
    value: int
    percentage: int


@dataclass(frozen=True)
class ProductPerformance:
    product_id: str
    product_name: str
    revenue: int
    profit: int
    quantity_sold: int
    stock: int
    total_cost: int
    recovery_percent: int
    profit_status: str
    has_imports: bool
    has_sales: bool
    is_top_30: bool = False
    is_bottom_30: bool = False
    recommendation: Optional[str] = None


@dataclass(frozen=True)
class InventoryItem:
    product: Product
    stock: int
    last_import_date: Optional[date]
    total_purchased: int
    total_sold: int
    stock_value: int
    status: str


@dataclass(frozen=True)
class HistoryRecord:
    id: str
    date: date
    kind: str
    quantity: int
    unit_price: float
    unit_cost: Optional[float] = None
    counterparty: Optional[str] = None


@dataclass(frozen=True)
class TransactionRow:
    date: date
    type_label: str
    product_name: str
    unit: str
    quantity: int
    unit_price: float
    line_total: float
    profit: float | str
    counterparty: str
    note: str = ""


@dataclass(frozen=True)
class ProductSheetStats:
    product_id: str
    product_name: str
    quantity_in: int
    quantity_out: int
    stock: int
    stock_value: int
    revenue: int
    profit: int


@dataclass(frozen=True)
class DashboardSummary:
    today: PeriodTotals
    month: PeriodTotals
    top_products: list[TopProduct] = field(default_factory=list)
    low_stock_count: int = 0


@dataclass(frozen=True)
class SystemStats:
    products: int
    purchases: int
    sales: int
    storage_mb: float
