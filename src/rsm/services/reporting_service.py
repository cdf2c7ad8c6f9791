from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from rsm.domain import aggregation
from rsm.domain.models import (
    CostShare,
    DashboardSummary,
    MonthlyTotals,
    ProductPerformance,
    RecoveryItem,
    TopProduct,
    YearlyTotals,
)
from rsm.repositories.contracts import BackendRepository
from rsm.services.parallel import fetch_all

YEARS_BACK = 4
PERFORMANCE_WINDOW_MONTHS = 6
REPORT_TOP_LIMIT = 10


@dataclass(frozen=True)
class Report:
    year: int
    monthly: list[MonthlyTotals]
    yearly: list[YearlyTotals]
    cost_breakdown: list[CostShare]
    top_products: list[TopProduct]
    recovery: list[RecoveryItem]
    performance: list[ProductPerformance] = field(default_factory=list)


def months_ago(d: date, months: int) -> date:
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class ReportingService:
    def __init__(self, repo: BackendRepository, today: Callable[[], date] = date.today):
        self.repo = repo
        self.today = today

    def dashboard(self, on: Optional[date] = None) -> DashboardSummary:
        on = on or self.today()
        data = fetch_all({
            "products": lambda: self.repo.list_products(active_only=True),
            "purchases": lambda: self.repo.list_purchases(),
            "sales": lambda: self.repo.list_sales(),
            "settings": self.repo.get_settings,
        })
        threshold = (
            data["settings"].default_alert_threshold if data["settings"] else aggregation.DEFAULT_ALERT_THRESHOLD
        )
        return aggregation.dashboard_summary(data["products"], data["purchases"], data["sales"], on, threshold)

    def report(self, year: Optional[int] = None, sort_by: str = "revenue") -> Report:
        today = self.today()
        year = int(year or today.year)
        window_start = months_ago(today, PERFORMANCE_WINDOW_MONTHS)

        data = fetch_all({
            "products": lambda: self.repo.list_products(active_only=True),
            "purchases": lambda: self.repo.list_purchases(),
            "sales": lambda: self.repo.list_sales(),
            "window_purchases": lambda: self.repo.list_purchases(start=window_start),
            "window_sales": lambda: self.repo.list_sales(start=window_start),
        })
        products = data["products"]
        purchases, sales = data["purchases"], data["sales"]

        performance = aggregation.product_performance(
            products, data["window_purchases"], data["window_sales"], purchases, sales
        )
        return Report(
            year=year,
            monthly=aggregation.monthly_totals(purchases, sales, year),
            yearly=aggregation.yearly_totals(purchases, sales, range(today.year - YEARS_BACK, today.year + 1)),
            cost_breakdown=aggregation.cost_breakdown(products, purchases),
            top_products=aggregation.top_products(products, sales, metric="revenue", limit=REPORT_TOP_LIMIT),
            recovery=aggregation.recovery_ranking(products, purchases, sales),
            performance=aggregation.sort_performance(performance, by=sort_by),
        )
