from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from rsm.domain import aggregation
from rsm.domain.errors import ConfigurationError, SheetsError
from rsm.domain.models import Product, PurchaseEntry, SaleEntry
from rsm.domain.sheet_layout import (
    SUMMARY_SHEET,
    TOP_PRODUCTS_LIMIT,
    YEAR_SHEET_HEADER,
    block_range,
    compute_layout,
    header_format_request,
    monthly_formula_block,
    product_stats_block,
    summary_tab_block,
    top_products_block,
    transaction_values,
    type_stats_block,
    year_sheet_format_requests,
)
from rsm.formatting import year_bounds
from rsm.repositories.contracts import BackendRepository
from rsm.services.parallel import fetch_all
from rsm.services.sheets_client import GoogleSheetsClient

log = logging.getLogger("rsm.sync")


@dataclass(frozen=True)
class SyncResult:
    success: bool
    sheet_name: str
    row_count: int = 0
    failed_rows: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class SyncService:
    """Rewrites the yearly tab and the summary tab of the spreadsheet.

    Every phase runs strictly after the previous one. There is no rollback:
    a failure after the clear leaves the tab partially written. Two syncs of
    the same year must not run at the same time; callers serialize them.
    """

    def __init__(
        self,
        repo: BackendRepository,
        client_factory: Callable[[], GoogleSheetsClient],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.client_factory = client_factory
        self.clock = clock

    def sync_year(self, year: Optional[int] = None) -> SyncResult:
        now = self.clock()
        year = int(year or now.year)
        sheet = str(year)

        try:
            client = self.client_factory()
        except ConfigurationError as e:
            log.error("sync_config_error year=%s error=%s", year, e)
            return SyncResult(success=False, sheet_name=sheet, error=str(e))

        try:
            data = self._load(year)
            rows = aggregation.transaction_rows(
                data["year_purchases"], data["year_sales"], {p.id: p for p in data["products"]}
            )

            created = self._ensure_sheet(client, sheet, rows=max(1000, len(rows) + 200), columns=20, frozen_rows=1)
            client.clear(f"'{sheet}'")
            client.update_values(f"'{sheet}'!A1:L1", [YEAR_SHEET_HEADER])
            if created:
                client.batch_update(year_sheet_format_requests(client.get_sheet_id(sheet)))

            log.info("sync_writing_rows sheet=%s rows=%s", sheet, len(rows))
            written, failed = self._append_rows(client, sheet, transaction_values(rows))

            self._write_summaries(client, sheet, written, rows, data)
        except Exception as e:  # noqa: BLE001 - reported to the caller as a failed sync
            log.exception("sync_failed sheet=%s error=%s", sheet, e)
            return SyncResult(success=False, sheet_name=sheet, error=str(e))

        self._rewrite_summary_tab(client, year, data["year_purchases"], data["year_sales"])
        self._touch_last_sync(now)

        log.info("sync_done sheet=%s written=%s failed=%s", sheet, written, failed)
        return SyncResult(success=True, sheet_name=sheet, row_count=written, failed_rows=failed)

    def _load(self, year: int) -> dict:
        start, end = year_bounds(year)
        return fetch_all({
            "products": lambda: self.repo.list_products(active_only=False),
            "year_purchases": lambda: self.repo.list_purchases(start, end),
            "year_sales": lambda: self.repo.list_sales(start, end),
            "all_purchases": lambda: self.repo.list_purchases(),
            "all_sales": lambda: self.repo.list_sales(),
        })

    @staticmethod
    def _ensure_sheet(client: GoogleSheetsClient, title: str, rows: int, columns: int, frozen_rows: int = 0) -> bool:
        """Returns True when the tab was created by this call."""
        try:
            client.add_sheet(title, rows=rows, columns=columns, frozen_rows=frozen_rows)
        except SheetsError as e:
            log.info("sheet_exists_or_create_failed sheet=%s error=%s", title, e)
            return False
        return True

    @staticmethod
    def _append_rows(client: GoogleSheetsClient, sheet: str, values: Sequence[list]) -> tuple[int, int]:
        written = failed = 0
        for row in values:
            try:
                client.append_row(f"'{sheet}'!A:L", row)
                written += 1
            except SheetsError as e:
                failed += 1
                log.warning("row_append_failed sheet=%s stt=%s error=%s", sheet, row[0], e)
        return written, failed

    def _write_summaries(self, client: GoogleSheetsClient, sheet: str, written: int, rows, data: dict) -> None:
        year_sales: list[SaleEntry] = data["year_sales"]
        products: list[Product] = data["products"]

        top = aggregation.top_products(products, year_sales, metric="quantity", limit=TOP_PRODUCTS_LIMIT)
        stock = aggregation.inventory_map(data["all_purchases"], data["all_sales"])
        stats = aggregation.product_sheet_stats(products, data["year_purchases"], year_sales, stock)
        layout = compute_layout(written, len(top), len(stats))

        blocks = [
            ("A", layout.top_header_row, top_products_block(top)),
            (layout.stats_column, layout.top_header_row, type_stats_block(aggregation.type_stats(rows))),
            ("A", layout.product_header_row, product_stats_block(stats)),
            ("A", layout.monthly_header_row, monthly_formula_block(layout)),
        ]
        for column, row, values in blocks:
            client.update_values(block_range(sheet, column, row, values), values, input_option="USER_ENTERED")

    def _rewrite_summary_tab(
        self,
        client: GoogleSheetsClient,
        year: int,
        purchases: Sequence[PurchaseEntry],
        sales: Sequence[SaleEntry],
    ) -> None:
        values = summary_tab_block(year, aggregation.monthly_totals(purchases, sales, year))
        try:
            created = self._ensure_sheet(client, SUMMARY_SHEET, rows=500, columns=15)
            client.clear(f"'{SUMMARY_SHEET}'!A1:O500")
            client.update_values(block_range(SUMMARY_SHEET, "A", 1, values), values, input_option="USER_ENTERED")
            if created:
                client.batch_update([header_format_request(client.get_sheet_id(SUMMARY_SHEET), 2, 4)])
        except SheetsError as e:
            log.error("summary_tab_failed year=%s error=%s", year, e)

    def _touch_last_sync(self, now: datetime) -> None:
        result = self.repo.update_settings({"last_sync_sheets": now})
        if not result.success:
            log.error("last_sync_update_failed error=%s", result.error)
