from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import asdict
from io import BytesIO
from typing import Any, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from rsm.application.container import AppContainer
from rsm.domain.errors import (
    AppError,
    BackendError,
    ConfigurationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from rsm.domain.models import DEFAULT_CUSTOMER
from rsm.services.export_service import XLSX_MIME

log = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (InsufficientStockError, 409),
    (ConfigurationError, 500),
    (BackendError, 502),
)


class PurchaseIn(BaseModel):
    quantity: int
    total_amount: int
    date: Optional[dt.date] = None
    product_id: Optional[str] = None
    new_product_name: Optional[str] = None
    supplier: Optional[str] = None
    note: Optional[str] = None


class SaleIn(BaseModel):
    product_id: str
    quantity: int
    unit_price: int
    date: Optional[dt.date] = None
    customer: str = DEFAULT_CUSTOMER
    note: Optional[str] = None


class SettingsIn(BaseModel):
    default_markup_percent: Optional[float] = None
    default_alert_threshold: Optional[int] = None
    auto_backup: Optional[bool] = None
    reminder_enabled: Optional[bool] = None


class ProductUpdateIn(BaseModel):
    name: Optional[str] = None
    unit: Optional[str] = None
    last_purchase_price: Optional[float] = None
    markup_percent: Optional[float] = None
    alert_threshold: Optional[int] = None


class ActiveIn(BaseModel):
    active: bool


def _status_for(exc: AppError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


def _present(model: BaseModel) -> dict[str, Any]:
    return {k: v for k, v in model.model_dump().items() if v is not None}


def create_app(container: AppContainer) -> FastAPI:
    app = FastAPI(title="Retail Store Manager")
    sync_lock = threading.Lock()

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            log.error("request_failed path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=status, content={"success": False, "error": str(exc)})

    @app.get("/api/keep-alive")
    def keep_alive():
        report = container.operations.keep_alive()
        payload = {k: v for k, v in asdict(report).items() if v is not None}
        return JSONResponse(status_code=200 if report.ok else 500, content=payload)

    @app.get("/api/dashboard")
    def dashboard():
        return asdict(container.reporting.dashboard())

    @app.get("/api/reports")
    def reports(year: Optional[int] = None, sort_by: str = "revenue"):
        try:
            return asdict(container.reporting.report(year=year, sort_by=sort_by))
        except ValueError as e:
            raise ValidationError(str(e)) from e

    @app.get("/api/inventory")
    def inventory(search: Optional[str] = None):
        return [asdict(it) for it in container.inventory.inventory_list(search=search)]

    @app.get("/api/inventory/{product_id}/history")
    def inventory_history(product_id: str, year: Optional[int] = None, month: Optional[int] = None):
        return [asdict(r) for r in container.inventory.product_history(product_id, year=year, month=month)]

    @app.post("/api/purchases")
    def create_purchase(body: PurchaseIn):
        receipt = container.purchases.record_purchase(
            quantity=body.quantity,
            total_amount=body.total_amount,
            on=body.date or dt.date.today(),
            product_id=body.product_id,
            new_product_name=body.new_product_name,
            supplier=body.supplier,
            note=body.note,
        )
        return {"success": True, **asdict(receipt)}

    @app.post("/api/sales")
    def create_sale(body: SaleIn):
        sale_id = container.sales.record_sale(
            product_id=body.product_id,
            quantity=body.quantity,
            unit_price=body.unit_price,
            on=body.date or dt.date.today(),
            customer=body.customer or DEFAULT_CUSTOMER,
            note=body.note,
        )
        return {"success": True, "id": sale_id}

    @app.get("/api/settings")
    def get_settings():
        settings = container.settings.get_settings()
        if settings is None:
            raise NotFoundError("Settings row is missing.")
        return asdict(settings)

    @app.put("/api/settings")
    def put_settings(body: SettingsIn):
        container.settings.update_settings(_present(body))
        return {"success": True}

    @app.get("/api/products")
    def products(active_only: bool = False):
        return [asdict(p) for p in container.settings.list_products(active_only=active_only)]

    @app.patch("/api/products/{product_id}")
    def patch_product(product_id: str, body: ProductUpdateIn):
        container.settings.update_product(product_id, _present(body))
        return {"success": True}

    @app.post("/api/products/{product_id}/active")
    def set_product_active(product_id: str, body: ActiveIn):
        container.settings.toggle_product_active(product_id, body.active)
        return {"success": True}

    @app.get("/api/stats")
    def stats():
        return asdict(container.settings.system_stats())

    @app.post("/api/sync")
    def sync(year: Optional[int] = None):
        # one sync at a time; a second concurrent run would interleave writes on the same tab
        with sync_lock:
            result = container.sync.sync_year(year)
        return result.to_dict()

    @app.get("/api/export")
    def export(period: str = Query("month")):
        result = container.export.export(period)
        return {"success": result.success, "fileName": result.file_name, "base64": result.base64}

    @app.get("/api/export/download")
    def export_download(period: str = Query("month")):
        result = container.export.export(period)
        return StreamingResponse(
            BytesIO(result.content),
            media_type=XLSX_MIME,
            headers={"Content-Disposition": f'attachment; filename="{result.file_name}"'},
        )

    return app
