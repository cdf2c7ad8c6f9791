from datetime import date, datetime, timezone

import pytest

from conftest import FakeRepository, purchase, sale
from rsm.domain.errors import BackendError, InsufficientStockError, NotFoundError, ValidationError
from rsm.domain.models import DEFAULT_CUSTOMER, AppSettings, Product
from rsm.repositories.supabase_repo import PRODUCTS, PURCHASES
from rsm.services.inventory_service import InventoryService
from rsm.services.operations_service import OperationsService
from rsm.services.purchase_service import PurchaseService, suggested_price, unit_cost_from_total
from rsm.services.reporting_service import ReportingService, months_ago
from rsm.services.sales_service import SalesService
from rsm.services.settings_service import SettingsService

ON = date(2025, 3, 10)


def test_unit_cost_and_suggested_price_round_half_up():
    assert unit_cost_from_total(200000, 100) == 2000
    assert unit_cost_from_total(10, 4) == 3
    assert suggested_price(2000, 50) == 3000
    assert suggested_price(999, 15) == 1149


def test_purchase_uses_product_markup_and_updates_last_price(repo):
    receipt = PurchaseService(repo).record_purchase(quantity=10, total_amount=330000, on=ON, product_id="b")

    assert receipt.unit_cost == 33000
    assert receipt.suggested_price == 39600
    assert repo.purchases[0].suggested_price == 39600
    assert repo.products["b"].last_purchase_price == 33000


def test_purchase_falls_back_to_settings_markup(repo):
    repo.settings = AppSettings(default_markup_percent=30)
    receipt = PurchaseService(repo).record_purchase(quantity=100, total_amount=200000, on=ON, product_id="a")
    assert receipt.suggested_price == 2600


def test_purchase_can_create_product_inline(repo):
    receipt = PurchaseService(repo).record_purchase(
        quantity=4, total_amount=10000, on=ON, new_product_name="  Sữa  ", supplier="Vinamilk"
    )
    assert receipt.created_product
    created = repo.products[receipt.product_id]
    assert created.name == "Sữa"
    assert created.unit == "cái"
    assert repo.purchases[0].supplier == "Vinamilk"


@pytest.mark.parametrize("qty, total", [(0, 1000), (5, 0), (-1, 100)])
def test_purchase_rejects_missing_amounts(repo, qty, total):
    with pytest.raises(ValidationError):
        PurchaseService(repo).record_purchase(quantity=qty, total_amount=total, on=ON, product_id="a")


def test_purchase_needs_a_product(repo):
    with pytest.raises(ValidationError):
        PurchaseService(repo).record_purchase(quantity=1, total_amount=100, on=ON)
    with pytest.raises(NotFoundError):
        PurchaseService(repo).record_purchase(quantity=1, total_amount=100, on=ON, product_id="zzz")


def test_purchase_insert_failure_raises(repo):
    repo.failing_tables.add(PURCHASES)
    with pytest.raises(BackendError):
        PurchaseService(repo).record_purchase(quantity=1, total_amount=100, on=ON, product_id="a")


def _sales(repo):
    return SalesService(repo, InventoryService(repo))


def test_sale_freezes_cost_and_defaults_customer(repo):
    repo.purchases.append(purchase("a", 100, 2000))
    sale_id = _sales(repo).record_sale("a", 30, 5000, on=ON)

    assert sale_id
    recorded = repo.sales[0]
    assert recorded.unit_cost == 2000
    assert recorded.customer == DEFAULT_CUSTOMER
    assert InventoryService(repo).stock_for("a") == 70


def test_sale_beyond_stock_is_rejected(repo):
    repo.purchases.append(purchase("a", 5, 2000))
    with pytest.raises(InsufficientStockError, match="Available: 5 cái"):
        _sales(repo).record_sale("a", 6, 5000, on=ON)
    assert repo.sales == []


@pytest.mark.parametrize("pid, qty, price", [("", 1, 100), ("a", 0, 100), ("a", 1, 0)])
def test_sale_requires_product_quantity_and_price(repo, pid, qty, price):
    with pytest.raises(ValidationError):
        _sales(repo).record_sale(pid, qty, price, on=ON)


def test_sale_preview_and_suggested_price(repo):
    repo.purchases.append(purchase("a", 100, 2000, suggested_price=3000))
    service = _sales(repo)
    preview = service.preview("a", 30, 5000)
    assert (preview.line_total, preview.profit, preview.profit_percent, preview.remaining_stock) == (
        150000, 90000, 150, 70
    )
    assert service.suggested_price("a") == 3000
    assert service.suggested_price("b") is None


def test_inventory_list_orders_by_status_and_filters(repo):
    repo.purchases += [purchase("a", 50, 2000), purchase("b", 3, 30000)]
    items = InventoryService(repo).inventory_list()
    assert [(it.product.id, it.status) for it in items] == [("b", "low"), ("a", "ok")]
    assert [it.product.id for it in InventoryService(repo).inventory_list(search="cà")] == ["b"]


def test_product_history_validates_input(repo):
    service = InventoryService(repo)
    with pytest.raises(ValidationError):
        service.product_history("a", month=13)
    with pytest.raises(NotFoundError):
        service.product_history("missing")


def test_months_ago_clamps_day():
    assert months_ago(date(2025, 8, 31), 6) == date(2025, 2, 28)
    assert months_ago(date(2025, 3, 15), 6) == date(2024, 9, 15)


def test_report_bundles_every_section():
    repo = FakeRepository(
        products=[Product(id="a", name="A"), Product(id="b", name="B")],
        purchases=[purchase("a", 10, 100, on=date(2025, 1, 5)), purchase("b", 10, 100, on=date(2024, 5, 5))],
        sales=[sale("a", 4, 300, unit_cost=100, on=date(2025, 2, 1))],
    )
    report = ReportingService(repo, today=lambda: date(2025, 3, 1)).report(sort_by="profit")

    assert report.year == 2025
    assert len(report.monthly) == 12
    assert [y.year for y in report.yearly] == [2021, 2022, 2023, 2024, 2025]
    assert report.top_products[0].revenue == 1200
    # window starts 2024-09-01, so B's purchase is outside it
    perf = {p.product_id: p for p in report.performance}
    assert perf["b"].total_cost == 0 and perf["b"].stock == 10
    assert report.performance[0].product_id == "a"


def test_dashboard_uses_settings_threshold():
    repo = FakeRepository(
        products=[Product(id="a", name="A")],
        purchases=[purchase("a", 8, 100, on=date(2025, 3, 1))],
        settings=AppSettings(default_alert_threshold=5),
    )
    summary = ReportingService(repo, today=lambda: date(2025, 3, 1)).dashboard()
    assert summary.low_stock_count == 0
    assert summary.today.total_in == 800


def test_settings_update_validates_keys_and_values(repo):
    service = SettingsService(repo)
    service.update_settings({"default_markup_percent": 35})
    assert repo.settings.default_markup_percent == 35
    with pytest.raises(ValidationError):
        service.update_settings({"last_sync_sheets": "now"})
    with pytest.raises(ValidationError):
        service.update_settings({"default_alert_threshold": -1})


def test_products_are_deactivated_not_deleted(repo):
    service = SettingsService(repo)
    service.toggle_product_active("a", False)
    assert repo.products["a"].active is False
    assert [p.id for p in service.list_products(active_only=True)] == ["b"]
    assert len(service.list_products()) == 2


def test_product_update_failure_raises(repo):
    repo.failing_tables.add(PRODUCTS)
    with pytest.raises(BackendError):
        SettingsService(repo).update_product("a", {"unit": "hộp"})


def test_system_stats_estimate_storage(repo):
    repo.purchases += [purchase("a", 1, 1), purchase("a", 2, 1)]
    repo.sales.append(sale("a", 1, 1))
    stats = SettingsService(repo).system_stats()
    assert (stats.products, stats.purchases, stats.sales) == (2, 2, 1)
    assert stats.storage_mb == pytest.approx(0.0025)


def test_keep_alive_reports_count_and_errors(repo):
    clock = lambda: datetime(2025, 3, 1, tzinfo=timezone.utc)  # noqa: E731
    ok = OperationsService(repo, clock=clock).keep_alive()
    assert ok.ok and ok.products == 2 and ok.time == "2025-03-01T00:00:00+00:00"

    repo.probe_error = "connection refused"
    failed = OperationsService(repo, clock=clock).keep_alive()
    assert not failed.ok
    assert failed.message == "connection refused"
    assert failed.products is None
