import itertools
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402

from rsm.domain.aggregation import filter_between  # noqa: E402
from rsm.domain.errors import BackendError, SheetsError  # noqa: E402
from rsm.domain.models import AppSettings, Product, PurchaseEntry, SaleEntry  # noqa: E402
from rsm.repositories.contracts import WriteResult  # noqa: E402
from rsm.repositories.supabase_repo import (  # noqa: E402
    PRODUCT_COLUMNS,
    PRODUCTS,
    PURCHASES,
    SALES,
    SETTINGS,
    to_columns,
)


class FakeRepository:
    """In-memory stand-in for the backend, keyed the way the services expect."""

    def __init__(self, products=(), purchases=(), sales=(), settings=AppSettings()):
        self.products = {p.id: p for p in products}
        self.purchases = list(purchases)
        self.sales = list(sales)
        self.settings = settings
        self.failing_tables: set[str] = set()
        self.probe_error = None
        self.settings_updates: list[dict] = []
        self._ids = itertools.count(1)

    def _fail(self, table):
        if table in self.failing_tables:
            return WriteResult(success=False, error=f"{table} write failed")
        return None

    # reads
    def list_products(self, active_only=True):
        items = sorted(self.products.values(), key=lambda p: p.name)
        return [p for p in items if p.active or not active_only]

    def get_product(self, product_id):
        return self.products.get(str(product_id))

    def list_purchases(self, start=None, end=None):
        return sorted(filter_between(self.purchases, start, end), key=lambda p: p.date)

    def list_sales(self, start=None, end=None):
        return sorted(filter_between(self.sales, start, end), key=lambda s: s.date)

    def list_purchases_for_product(self, product_id):
        return sorted((p for p in self.purchases if p.product_id == product_id), key=lambda p: p.date, reverse=True)

    def list_sales_for_product(self, product_id):
        return sorted((s for s in self.sales if s.product_id == product_id), key=lambda s: s.date, reverse=True)

    def latest_suggested_price(self, product_id):
        rows = self.list_purchases_for_product(product_id)
        return rows[0].suggested_price if rows and rows[0].suggested_price else None

    def probe_count(self, table):
        if self.probe_error:
            raise BackendError(self.probe_error)
        return {PRODUCTS: len(self.products), PURCHASES: len(self.purchases), SALES: len(self.sales)}.get(table, 0)

    def count(self, table):
        return self.probe_count(table)

    def get_settings(self):
        return self.settings

    # writes
    def insert_product(self, values):
        failed = self._fail(PRODUCTS)
        if failed:
            return failed
        row = {"id": f"p{next(self._ids)}", **to_columns(PRODUCT_COLUMNS, values)}
        self.products[row["id"]] = Product(
            id=row["id"],
            name=values["name"],
            unit=values.get("unit", ""),
            last_purchase_price=values.get("last_purchase_price", 0),
            active=values.get("active", True),
        )
        return WriteResult(success=True, data=row)

    def update_product(self, product_id, values):
        failed = self._fail(PRODUCTS)
        if failed:
            return failed
        self.products[product_id] = replace(self.products[product_id], **values)
        return WriteResult(success=True, data={"id": product_id})

    def insert_purchase(self, values):
        failed = self._fail(PURCHASES)
        if failed:
            return failed
        product = self.products[values["product_id"]]
        entry = PurchaseEntry(
            id=f"n{next(self._ids)}",
            product_name=product.name,
            product_unit=product.unit,
            **values,
        )
        self.purchases.append(entry)
        return WriteResult(success=True, data={"id": entry.id})

    def insert_sale(self, values):
        failed = self._fail(SALES)
        if failed:
            return failed
        product = self.products[values["product_id"]]
        entry = SaleEntry(
            id=f"b{next(self._ids)}",
            product_name=product.name,
            product_unit=product.unit,
            **values,
        )
        self.sales.append(entry)
        return WriteResult(success=True, data={"id": entry.id})

    def update_settings(self, values):
        self.settings_updates.append(dict(values))
        failed = self._fail(SETTINGS)
        if failed:
            return failed
        self.settings = replace(self.settings or AppSettings(), **values)
        return WriteResult(success=True)


class FakeSheetsClient:
    """Records every call and keeps a per-tab picture of what was written."""

    def __init__(self, existing=(), failing_stt=()):
        self.tabs = {title: {"rows": [], "blocks": {}} for title in existing}
        self.sheet_ids = {title: i for i, title in enumerate(existing)}
        self.failing_stt = set(failing_stt)
        self.batches: list[list[dict]] = []
        self.calls: list[tuple] = []

    @staticmethod
    def _title(a1_range):
        return a1_range.split("!")[0].strip("'")

    def add_sheet(self, title, rows=1000, columns=20, frozen_rows=0):
        self.calls.append(("add_sheet", title))
        if title in self.tabs:
            raise SheetsError(f'A sheet with the name "{title}" already exists.', status=400)
        self.tabs[title] = {"rows": [], "blocks": {}}
        self.sheet_ids[title] = len(self.sheet_ids)
        return {}

    def get_sheet_id(self, title):
        if title not in self.sheet_ids:
            raise SheetsError(f'Sheet "{title}" not found')
        return self.sheet_ids[title]

    def batch_update(self, requests_):
        self.calls.append(("batch_update", len(requests_)))
        self.batches.append(requests_)
        return {}

    def clear(self, a1_range):
        self.calls.append(("clear", a1_range))
        tab = self.tabs[self._title(a1_range)]
        tab["rows"] = []
        tab["blocks"] = {}
        return {}

    def update_values(self, a1_range, values, input_option="RAW"):
        self.calls.append(("update_values", a1_range, input_option))
        self.tabs[self._title(a1_range)]["blocks"][a1_range] = values
        return {}

    def append_row(self, a1_range, row, input_option="USER_ENTERED"):
        if row[0] in self.failing_stt:
            raise SheetsError("Quota exceeded", status=429)
        self.tabs[self._title(a1_range)]["rows"].append(list(row))
        return {}


def purchase(pid, qty, unit_cost, on=date(2025, 3, 1), name=None, **kw):
    return PurchaseEntry(
        id=kw.pop("id", f"n-{pid}-{on}-{qty}"),
        date=on,
        product_id=pid,
        quantity=qty,
        unit_cost=unit_cost,
        product_name=name or f"Product {pid}",
        **kw,
    )


def sale(pid, qty, unit_price, unit_cost=0, on=date(2025, 3, 2), name=None, **kw):
    return SaleEntry(
        id=kw.pop("id", f"b-{pid}-{on}-{qty}"),
        date=on,
        product_id=pid,
        quantity=qty,
        unit_cost=unit_cost,
        unit_price=unit_price,
        product_name=name or f"Product {pid}",
        **kw,
    )


@pytest.fixture
def repo():
    return FakeRepository(
        products=[
            Product(id="a", name="Bánh mì", unit="cái", last_purchase_price=2000),
            Product(id="b", name="Cà phê", unit="gói", last_purchase_price=30000, markup_percent=20),
        ]
    )
