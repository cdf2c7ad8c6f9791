"""Pure folding of purchase/sale records into derived metrics.

Nothing here performs I/O: callers fetch the records and pass them in. Sums
are kept unrounded and only the values handed back to callers are rounded to
whole currency units.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence, TypeVar, Union

from rsm.domain.models import (
    PURCHASE_LABEL,
    SALE_LABEL,
    CostShare,
    DashboardSummary,
    HistoryRecord,
    InventoryItem,
    MonthlyTotals,
    PeriodTotals,
    Product,
    ProductPerformance,
    ProductSheetStats,
    PurchaseEntry,
    RecoveryItem,
    SaleEntry,
    TopProduct,
    TransactionRow,
    YearlyTotals,
)
from rsm.formatting import round_number

Entry = TypeVar("Entry", PurchaseEntry, SaleEntry)

STATUS_OUT = "out"
STATUS_LOW = "low"
STATUS_OK = "ok"
_STATUS_ORDER = {STATUS_OUT: 0, STATUS_LOW: 1, STATUS_OK: 2}

DEFAULT_ALERT_THRESHOLD = 10


# ---------- per-record ----------
def sale_profit(sale: SaleEntry) -> float:
    # missing or zero cost means "no profit computed", never a loss
    if not sale.unit_cost:
        return 0.0
    return (sale.unit_price - sale.unit_cost) * sale.quantity


def display_profit(sale: SaleEntry) -> float:
    """Profit as summaries show it: a losing sale reads as zero."""
    return max(sale_profit(sale), 0.0)


def profit_rate(profit: float, cost: float) -> int:
    if cost <= 0:
        return 0
    return round_number(profit / cost * 100)


def filter_between(records: Iterable[Entry], start: Optional[date], end: Optional[date]) -> list[Entry]:
    out = []
    for r in records:
        if start is not None and r.date < start:
            continue
        if end is not None and r.date > end:
            continue
        out.append(r)
    return out


def _in_month(records: Iterable[Entry], year: int, month: Optional[int] = None) -> list[Entry]:
    return [r for r in records if r.date.year == year and (month is None or r.date.month == month)]


# ---------- inventory ----------
def inventory_map(purchases: Iterable[PurchaseEntry], sales: Iterable[SaleEntry]) -> dict[str, int]:
    """Stock per product id. Negative levels are kept as-is: they flag bad data."""
    levels: dict[str, int] = {}
    for p in purchases:
        levels[p.product_id] = levels.get(p.product_id, 0) + int(p.quantity)
    for s in sales:
        levels[s.product_id] = levels.get(s.product_id, 0) - int(s.quantity)
    return levels


def stock_status(level: int, threshold: Optional[int] = None) -> str:
    limit = DEFAULT_ALERT_THRESHOLD if threshold is None else threshold
    if level == 0:
        return STATUS_OUT
    if level <= limit:
        return STATUS_LOW
    return STATUS_OK


def inventory_items(
    products: Sequence[Product],
    purchases: Sequence[PurchaseEntry],
    sales: Sequence[SaleEntry],
    default_threshold: int = DEFAULT_ALERT_THRESHOLD,
) -> list[InventoryItem]:
    levels = inventory_map(purchases, sales)
    last_import: dict[str, date] = {}
    bought: dict[str, float] = defaultdict(float)
    sold: dict[str, float] = defaultdict(float)

    for p in purchases:
        if p.product_id not in last_import or p.date > last_import[p.product_id]:
            last_import[p.product_id] = p.date
        bought[p.product_id] += p.line_total
    for s in sales:
        sold[s.product_id] += s.line_total

    items = []
    for product in products:
        level = levels.get(product.id, 0)
        threshold = product.alert_threshold if product.alert_threshold is not None else default_threshold
        items.append(
            InventoryItem(
                product=product,
                stock=level,
                last_import_date=last_import.get(product.id),
                total_purchased=round_number(bought[product.id]),
                total_sold=round_number(sold[product.id]),
                stock_value=round_number(level * product.last_purchase_price),
                status=stock_status(level, threshold),
            )
        )
    return items


def sort_by_status(items: Iterable[InventoryItem]) -> list[InventoryItem]:
    return sorted(items, key=lambda it: _STATUS_ORDER[it.status])


def product_history(
    purchases: Iterable[PurchaseEntry],
    sales: Iterable[SaleEntry],
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> list[HistoryRecord]:
    records = [
        HistoryRecord(
            id=p.id, date=p.date, kind="nhap", quantity=p.quantity,
            unit_price=p.unit_cost, counterparty=p.supplier,
        )
        for p in purchases
    ]
    records += [
        HistoryRecord(
            id=s.id, date=s.date, kind="ban", quantity=s.quantity,
            unit_price=s.unit_price, unit_cost=s.unit_cost, counterparty=s.customer,
        )
        for s in sales
    ]
    if year:
        records = [r for r in records if r.date.year == year]
    if month:
        records = [r for r in records if r.date.month == month]
    return sorted(records, key=lambda r: r.date, reverse=True)


# ---------- period totals ----------
def period_totals(purchases: Iterable[PurchaseEntry], sales: Iterable[SaleEntry]) -> PeriodTotals:
    total_in = sum(p.line_total for p in purchases)
    total_out = sum(s.line_total for s in sales)
    profit = total_out - total_in
    return PeriodTotals(
        total_in=round_number(total_in),
        total_out=round_number(total_out),
        profit=round_number(profit),
        profit_rate=profit_rate(profit, total_in),
    )


def monthly_totals(purchases: Sequence[PurchaseEntry], sales: Sequence[SaleEntry], year: int) -> list[MonthlyTotals]:
    out = []
    for month in range(1, 13):
        totals = period_totals(_in_month(purchases, year, month), _in_month(sales, year, month))
        out.append(
            MonthlyTotals(
                month=month,
                label=f"T{month}",
                total_in=totals.total_in,
                total_out=totals.total_out,
                profit=totals.profit,
            )
        )
    return out


def growth_rate(current_profit: float, prior_profit: float) -> int:
    # a non-positive prior year (losses included) yields 0, not a signed rate
    if prior_profit > 0:
        return round_number((current_profit - prior_profit) / prior_profit * 100)
    return 0


def yearly_totals(
    purchases: Sequence[PurchaseEntry],
    sales: Sequence[SaleEntry],
    years: Iterable[int],
) -> list[YearlyTotals]:
    out: list[YearlyTotals] = []
    for year in years:
        totals = period_totals(_in_month(purchases, year), _in_month(sales, year))
        rate = growth_rate(totals.profit, out[-1].profit) if out else 0
        out.append(
            YearlyTotals(
                year=year,
                total_in=totals.total_in,
                total_out=totals.total_out,
                profit=totals.profit,
                growth_rate=rate,
            )
        )
    return out


# ---------- rankings ----------
def _products_from_sales(sales: Iterable[SaleEntry]) -> list[Product]:
    seen: dict[str, Product] = {}
    for s in sales:
        if s.product_id not in seen:
            seen[s.product_id] = Product(id=s.product_id, name=s.product_name, unit=s.product_unit)
    return list(seen.values())


def top_products(
    products: Optional[Sequence[Product]],
    sales: Sequence[SaleEntry],
    metric: str = "quantity",
    limit: int = 3,
) -> list[TopProduct]:
    """Rank products by summed sale quantity or revenue.

    Ties keep the order of ``products``. When ``products`` is None the order
    and names come from the sales themselves.
    """
    if metric not in ("quantity", "revenue"):
        raise ValueError(f"Unknown ranking metric: {metric}")
    if products is None:
        products = _products_from_sales(sales)

    qty: dict[str, int] = defaultdict(int)
    revenue: dict[str, float] = defaultdict(float)
    profit: dict[str, float] = defaultdict(float)
    for s in sales:
        qty[s.product_id] += int(s.quantity)
        revenue[s.product_id] += s.line_total
        profit[s.product_id] += display_profit(s)

    ranked = [
        TopProduct(
            product_id=p.id,
            product_name=p.name,
            quantity=qty[p.id],
            revenue=round_number(revenue[p.id]),
            profit=round_number(profit[p.id]),
        )
        for p in products
        if qty[p.id] > 0
    ]
    key = (lambda t: t.quantity) if metric == "quantity" else (lambda t: revenue[t.product_id])
    ranked.sort(key=key, reverse=True)
    return ranked[: max(limit, 0)]


def recovery_percent(revenue: float, cost: float) -> float:
    if cost <= 0:
        return 0.0
    return max(min(revenue / cost * 100, 100.0), 0.0)


def recovery_ranking(
    products: Sequence[Product],
    purchases: Sequence[PurchaseEntry],
    sales: Sequence[SaleEntry],
    limit: int = 8,
) -> list[RecoveryItem]:
    cost: dict[str, float] = defaultdict(float)
    revenue: dict[str, float] = defaultdict(float)
    for p in purchases:
        cost[p.product_id] += p.line_total
    for s in sales:
        revenue[s.product_id] += s.line_total
    levels = inventory_map(purchases, sales)

    items = [
        RecoveryItem(
            product_id=p.id,
            product_name=p.name,
            recovery_percent=round_number(recovery_percent(revenue[p.id], cost[p.id])),
            stock=levels.get(p.id, 0),
        )
        for p in products
    ]
    items = [it for it in items if it.recovery_percent > 0 or it.stock > 0]
    items.sort(key=lambda it: it.recovery_percent, reverse=True)
    return items[:limit]


def cost_breakdown(products: Sequence[Product], purchases: Sequence[PurchaseEntry], limit: int = 6) -> list[CostShare]:
    """Share of each product in total purchase spend. Entries past ``limit`` are dropped."""
    spend: dict[str, float] = defaultdict(float)
    for p in purchases:
        spend[p.product_id] += p.line_total
    total = sum(spend.values())

    shares = [
        CostShare(
            product_id=p.id,
            product_name=p.name,
            value=round_number(spend[p.id]),
            percentage=round_number(spend[p.id] / total * 100) if total > 0 else 0,
        )
        for p in products
    ]
    shares = [s for s in shares if s.value > 0]
    shares.sort(key=lambda s: s.value, reverse=True)
    return shares[:limit]


def _profit_status(recovery: float) -> str:
    if recovery >= 100:
        return "PROFIT"
    if recovery >= 50:
        return "BREAKING_EVEN"
    return "LOSS"


def product_performance(
    products: Sequence[Product],
    window_purchases: Sequence[PurchaseEntry],
    window_sales: Sequence[SaleEntry],
    all_purchases: Sequence[PurchaseEntry],
    all_sales: Sequence[SaleEntry],
) -> list[ProductPerformance]:
    """Per-product money flow over a time window, with stock from full history."""
    known = {p.id for p in products}
    cost: dict[str, float] = defaultdict(float)
    revenue: dict[str, float] = defaultdict(float)
    sold: dict[str, int] = defaultdict(int)
    for p in window_purchases:
        if p.product_id in known:
            cost[p.product_id] += p.line_total
    for s in window_sales:
        if s.product_id in known:
            revenue[s.product_id] += s.line_total
            sold[s.product_id] += int(s.quantity)
    levels = inventory_map(all_purchases, all_sales)
    imported = {p.product_id for p in window_purchases}
    with_sales = {s.product_id for s in window_sales}

    raw = []
    for p in products:
        recovery = recovery_percent(revenue[p.id], cost[p.id])
        raw.append((p, revenue[p.id], cost[p.id], recovery))

    top_cut = bottom_cut = None
    if len(raw) >= 3:
        values = sorted(r[1] for r in raw)
        bottom_cut = values[math.floor(len(values) * 0.3)]
        top_cut = values[math.floor(len(values) * 0.7)]

    out = []
    for p, rev, spent, recovery in raw:
        stock = levels.get(p.id, 0)
        is_top = top_cut is not None and rev >= top_cut
        is_bottom = bottom_cut is not None and rev <= bottom_cut
        recommendation = None
        if top_cut is not None:
            if recovery >= 100 and is_top and stock < 10:
                recommendation = "BUY_MORE"
            elif recovery < 50 and is_bottom and stock > 20:
                recommendation = "STOP_BUYING"
        out.append(
            ProductPerformance(
                product_id=p.id,
                product_name=p.name,
                revenue=round_number(rev),
                profit=round_number(rev - spent),
                quantity_sold=sold[p.id],
                stock=stock,
                total_cost=round_number(spent),
                recovery_percent=round_number(recovery),
                profit_status=_profit_status(recovery),
                has_imports=p.id in imported,
                has_sales=p.id in with_sales,
                is_top_30=is_top,
                is_bottom_30=is_bottom,
                recommendation=recommendation,
            )
        )
    return out


def sort_performance(items: Iterable[ProductPerformance], by: str = "revenue") -> list[ProductPerformance]:
    keys = {
        "revenue": lambda p: p.revenue,
        "profit": lambda p: p.profit,
        "quantity": lambda p: p.quantity_sold,
        "recovery": lambda p: p.recovery_percent,
    }
    if by not in keys:
        raise ValueError(f"Unknown sort key: {by}")
    return sorted(items, key=keys[by], reverse=True)


def dashboard_summary(
    products: Sequence[Product],
    purchases: Sequence[PurchaseEntry],
    sales: Sequence[SaleEntry],
    on: date,
    default_threshold: int = DEFAULT_ALERT_THRESHOLD,
) -> DashboardSummary:
    day_p = [p for p in purchases if p.date == on]
    day_s = [s for s in sales if s.date == on]
    month_p = _in_month(purchases, on.year, on.month)
    month_s = _in_month(sales, on.year, on.month)
    items = inventory_items(products, purchases, sales, default_threshold)
    return DashboardSummary(
        today=period_totals(day_p, day_s),
        month=period_totals(month_p, month_s),
        top_products=top_products(products, month_s, metric="quantity", limit=3),
        low_stock_count=sum(1 for it in items if it.status != STATUS_OK),
    )


# ---------- rows shared by sheet sync and export ----------
def transaction_rows(
    purchases: Iterable[PurchaseEntry],
    sales: Iterable[SaleEntry],
    products: Optional[Mapping[str, Product]] = None,
) -> list[TransactionRow]:
    products = products or {}

    def _names(entry: Union[PurchaseEntry, SaleEntry]) -> tuple[str, str]:
        known = products.get(entry.product_id)
        name = entry.product_name or (known.name if known else "")
        unit = entry.product_unit or (known.unit if known else "")
        return name, unit

    rows: list[TransactionRow] = []
    for p in purchases:
        name, unit = _names(p)
        rows.append(
            TransactionRow(
                date=p.date, type_label=PURCHASE_LABEL, product_name=name, unit=unit,
                quantity=p.quantity, unit_price=p.unit_cost, line_total=p.line_total,
                profit="", counterparty=p.supplier or "", note=p.note or "",
            )
        )
    for s in sales:
        name, unit = _names(s)
        profit = display_profit(s)
        rows.append(
            TransactionRow(
                date=s.date, type_label=SALE_LABEL, product_name=name, unit=unit,
                quantity=s.quantity, unit_price=s.unit_price, line_total=s.line_total,
                profit=profit if profit > 0 else "", counterparty=s.customer or "", note=s.note or "",
            )
        )
    rows.sort(key=lambda r: r.date)
    return rows


def type_stats(rows: Iterable[TransactionRow]) -> list[tuple[str, int, int]]:
    counts = {PURCHASE_LABEL: 0, SALE_LABEL: 0}
    totals = {PURCHASE_LABEL: 0.0, SALE_LABEL: 0.0}
    for r in rows:
        counts[r.type_label] = counts.get(r.type_label, 0) + 1
        totals[r.type_label] = totals.get(r.type_label, 0.0) + r.line_total
    return [(label, counts[label], round_number(totals[label])) for label in counts]


def product_sheet_stats(
    products: Sequence[Product],
    purchases: Sequence[PurchaseEntry],
    sales: Sequence[SaleEntry],
    stock_levels: Mapping[str, int],
) -> list[ProductSheetStats]:
    """Per-product year flows; ``stock_levels`` must come from full history."""
    qty_in: dict[str, int] = defaultdict(int)
    qty_out: dict[str, int] = defaultdict(int)
    revenue: dict[str, float] = defaultdict(float)
    profit: dict[str, float] = defaultdict(float)
    for p in purchases:
        qty_in[p.product_id] += int(p.quantity)
    for s in sales:
        qty_out[s.product_id] += int(s.quantity)
        revenue[s.product_id] += s.line_total
        profit[s.product_id] += display_profit(s)

    catalog = {p.id: p for p in products}
    for extra in _products_from_sales(sales) + [
        Product(id=p.product_id, name=p.product_name, unit=p.product_unit) for p in purchases
    ]:
        catalog.setdefault(extra.id, extra)

    stats = []
    for pid, product in catalog.items():
        stock = int(stock_levels.get(pid, 0))
        if not (qty_in[pid] or qty_out[pid] or stock):
            continue
        stats.append(
            ProductSheetStats(
                product_id=pid,
                product_name=product.name,
                quantity_in=qty_in[pid],
                quantity_out=qty_out[pid],
                stock=stock,
                stock_value=round_number(stock * product.last_purchase_price),
                revenue=round_number(revenue[pid]),
                profit=round_number(profit[pid]),
            )
        )
    stats.sort(key=lambda s: (-s.stock, -s.profit))
    return stats
