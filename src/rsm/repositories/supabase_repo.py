from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, TypeVar

import requests

from rsm.config import BackendConfig
from rsm.domain.errors import BackendError
from rsm.domain.models import AppSettings, Product, PurchaseEntry, SaleEntry
from rsm.formatting import parse_date, parse_datetime
from rsm.repositories.contracts import WriteResult

log = logging.getLogger("rsm.backend")

PRODUCTS = "products"
PURCHASES = "nhap_hang"
SALES = "ban_hang"
SETTINGS = "app_settings"
SETTINGS_ID = 1

T = TypeVar("T")

_PURCHASE_SELECT = (
    "id,ngay_thang,product_id,so_luong,don_gia,gia_ban_goi_y,nha_cung_cap,ghi_chu,products(ten_hang,don_vi)"
)
_SALE_SELECT = (
    "id,ngay_ban,product_id,so_luong,gia_nhap,gia_ban,khach_hang,ghi_chu,products(ten_hang,don_vi)"
)

# domain field name -> backend column; unknown keys pass through unchanged
PRODUCT_COLUMNS = {
    "name": "ten_hang",
    "unit": "don_vi",
    "last_purchase_price": "gia_nhap_gan_nhat",
    "markup_percent": "ti_le_lai",
    "alert_threshold": "nguong_canh_bao",
    "active": "active",
}
PURCHASE_COLUMNS = {
    "date": "ngay_thang",
    "product_id": "product_id",
    "quantity": "so_luong",
    "unit_cost": "don_gia",
    "suggested_price": "gia_ban_goi_y",
    "supplier": "nha_cung_cap",
    "note": "ghi_chu",
}
SALE_COLUMNS = {
    "date": "ngay_ban",
    "product_id": "product_id",
    "quantity": "so_luong",
    "unit_cost": "gia_nhap",
    "unit_price": "gia_ban",
    "customer": "khach_hang",
    "note": "ghi_chu",
}
SETTINGS_COLUMNS = {
    "default_markup_percent": "ti_le_lai_mac_dinh",
    "default_alert_threshold": "nguong_canh_bao_mac_dinh",
    "auto_backup": "tu_dong_sao_luu",
    "reminder_enabled": "nhac_nho",
    "last_sync_sheets": "last_sync_sheets",
}


def to_columns(mapping: dict[str, str], values: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in values.items():
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        out[mapping.get(key, key)] = value
    return out


def _num(value: Any, default: float = 0.0) -> float:
    return default if value is None else float(value)


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _embedded(row: dict) -> tuple[str, str]:
    prod = row.get("products") or {}
    return str(prod.get("ten_hang") or ""), str(prod.get("don_vi") or "")


def product_from_row(row: dict) -> Product:
    return Product(
        id=str(row["id"]),
        name=str(row.get("ten_hang") or ""),
        unit=str(row.get("don_vi") or ""),
        last_purchase_price=_num(row.get("gia_nhap_gan_nhat")),
        markup_percent=_opt_float(row.get("ti_le_lai")),
        alert_threshold=_opt_int(row.get("nguong_canh_bao")),
        active=bool(row.get("active", True)),
    )


def purchase_from_row(row: dict) -> PurchaseEntry:
    name, unit = _embedded(row)
    return PurchaseEntry(
        id=str(row.get("id", "")),
        date=parse_date(row["ngay_thang"]),
        product_id=str(row["product_id"]),
        quantity=int(row.get("so_luong") or 0),
        unit_cost=_num(row.get("don_gia")),
        suggested_price=_num(row.get("gia_ban_goi_y")),
        supplier=row.get("nha_cung_cap"),
        note=row.get("ghi_chu"),
        product_name=name,
        product_unit=unit,
    )


def sale_from_row(row: dict) -> SaleEntry:
    name, unit = _embedded(row)
    return SaleEntry(
        id=str(row.get("id", "")),
        date=parse_date(row["ngay_ban"]),
        product_id=str(row["product_id"]),
        quantity=int(row.get("so_luong") or 0),
        unit_cost=_num(row.get("gia_nhap")),
        unit_price=_num(row.get("gia_ban")),
        customer=row.get("khach_hang"),
        note=row.get("ghi_chu"),
        product_name=name,
        product_unit=unit,
    )


def settings_from_row(row: dict) -> AppSettings:
    return AppSettings(
        id=int(row.get("id", SETTINGS_ID)),
        default_markup_percent=_num(row.get("ti_le_lai_mac_dinh"), 50.0),
        default_alert_threshold=int(row.get("nguong_canh_bao_mac_dinh") or 10),
        auto_backup=bool(row.get("tu_dong_sao_luu", False)),
        reminder_enabled=bool(row.get("nhac_nho", False)),
        last_sync_sheets=parse_datetime(row.get("last_sync_sheets")),
        updated_at=parse_datetime(row.get("updated_at")),
    )


class SupabaseRepository:
    """PostgREST access to the managed backend.

    Read failures are logged and degrade to empty results so callers can keep
    aggregating over "no data". Writes report failure through ``WriteResult``.
    """

    def __init__(self, config: BackendConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.api_key}",
        })

    def _url(self, table: str) -> str:
        return f"{self.config.url}/rest/v1/{table}"

    def _request(self, method: str, table: str, params=None, json=None, headers=None) -> requests.Response:
        r = self.session.request(
            method,
            self._url(table),
            params=params,
            json=json,
            headers=headers,
            timeout=self.config.timeout,
        )
        r.raise_for_status()
        return r

    def _select(self, table: str, params: list[tuple[str, str]]) -> list[dict]:
        try:
            data = self._request("GET", table, params=params).json()
        except (requests.RequestException, ValueError) as e:
            log.error("select_failed table=%s error=%s", table, e)
            return []
        return data if isinstance(data, list) else []

    def _mapped(self, table: str, params: list[tuple[str, str]], mapper: Callable[[dict], T]) -> list[T]:
        """Like ``_select`` but maps each row; a malformed row is logged and skipped."""
        out = []
        for row in self._select(table, params):
            try:
                out.append(mapper(row))
            except (KeyError, TypeError, ValueError) as e:
                log.error("row_malformed table=%s id=%s error=%s", table, row.get("id"), e)
        return out

    def _write(self, method: str, table: str, values: dict[str, Any], params=None) -> WriteResult:
        try:
            r = self._request(
                method, table, params=params, json=values,
                headers={"Prefer": "return=representation"},
            )
            body = r.json() if r.content else []
        except (requests.RequestException, ValueError) as e:
            log.error("write_failed table=%s method=%s error=%s", table, method, e)
            return WriteResult(success=False, error=str(e))
        row = body[0] if isinstance(body, list) and body else None
        return WriteResult(success=True, data=row)

    @staticmethod
    def _range(column: str, start: Optional[date], end: Optional[date]) -> list[tuple[str, str]]:
        params = []
        if start is not None:
            params.append((column, f"gte.{start.isoformat()}"))
        if end is not None:
            params.append((column, f"lte.{end.isoformat()}"))
        return params

    # ---------- products ----------
    def list_products(self, active_only: bool = True) -> list[Product]:
        params = [("select", "*"), ("order", "ten_hang.asc")]
        if active_only:
            params.append(("active", "eq.true"))
        return self._mapped(PRODUCTS, params, product_from_row)

    def get_product(self, product_id: str) -> Optional[Product]:
        rows = self._mapped(PRODUCTS, [("select", "*"), ("id", f"eq.{product_id}")], product_from_row)
        return rows[0] if rows else None

    def insert_product(self, values: dict[str, Any]) -> WriteResult:
        return self._write("POST", PRODUCTS, to_columns(PRODUCT_COLUMNS, values))

    def update_product(self, product_id: str, values: dict[str, Any]) -> WriteResult:
        return self._write("PATCH", PRODUCTS, to_columns(PRODUCT_COLUMNS, values), params=[("id", f"eq.{product_id}")])

    # ---------- entries ----------
    def list_purchases(self, start: Optional[date] = None, end: Optional[date] = None) -> list[PurchaseEntry]:
        params = [("select", _PURCHASE_SELECT), *self._range("ngay_thang", start, end), ("order", "ngay_thang.asc")]
        return self._mapped(PURCHASES, params, purchase_from_row)

    def list_sales(self, start: Optional[date] = None, end: Optional[date] = None) -> list[SaleEntry]:
        params = [("select", _SALE_SELECT), *self._range("ngay_ban", start, end), ("order", "ngay_ban.asc")]
        return self._mapped(SALES, params, sale_from_row)

    def list_purchases_for_product(self, product_id: str) -> list[PurchaseEntry]:
        params = [("select", _PURCHASE_SELECT), ("product_id", f"eq.{product_id}"), ("order", "ngay_thang.desc")]
        return self._mapped(PURCHASES, params, purchase_from_row)

    def list_sales_for_product(self, product_id: str) -> list[SaleEntry]:
        params = [("select", _SALE_SELECT), ("product_id", f"eq.{product_id}"), ("order", "ngay_ban.desc")]
        return self._mapped(SALES, params, sale_from_row)

    def latest_suggested_price(self, product_id: str) -> Optional[float]:
        rows = self._select(PURCHASES, [
            ("select", "gia_ban_goi_y"),
            ("product_id", f"eq.{product_id}"),
            ("order", "ngay_thang.desc"),
            ("limit", "1"),
        ])
        if not rows or not rows[0].get("gia_ban_goi_y"):
            return None
        return float(rows[0]["gia_ban_goi_y"])

    def insert_purchase(self, values: dict[str, Any]) -> WriteResult:
        return self._write("POST", PURCHASES, to_columns(PURCHASE_COLUMNS, values))

    def insert_sale(self, values: dict[str, Any]) -> WriteResult:
        return self._write("POST", SALES, to_columns(SALE_COLUMNS, values))

    def probe_count(self, table: str) -> int:
        """Exact row count; raises ``BackendError`` instead of degrading to 0."""
        try:
            r = self._request(
                "HEAD", table, params=[("select", "id")],
                headers={"Prefer": "count=exact", "Range": "0-0"},
            )
        except requests.RequestException as e:
            raise BackendError(str(e)) from e
        total = r.headers.get("Content-Range", "").rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0

    def count(self, table: str) -> int:
        try:
            return self.probe_count(table)
        except BackendError as e:
            log.error("count_failed table=%s error=%s", table, e)
            return 0

    # ---------- settings ----------
    def get_settings(self) -> Optional[AppSettings]:
        rows = self._mapped(SETTINGS, [("select", "*"), ("id", f"eq.{SETTINGS_ID}")], settings_from_row)
        if not rows:
            log.error("settings_missing id=%s", SETTINGS_ID)
            return None
        return rows[0]

    def update_settings(self, values: dict[str, Any]) -> WriteResult:
        payload = {**to_columns(SETTINGS_COLUMNS, values), "updated_at": datetime.now(timezone.utc).isoformat()}
        return self._write("PATCH", SETTINGS, payload, params=[("id", f"eq.{SETTINGS_ID}")])
