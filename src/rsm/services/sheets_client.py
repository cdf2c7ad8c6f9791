from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from rsm.config import SheetsConfig
from rsm.domain.errors import SheetsError

log = logging.getLogger("rsm.sync")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
API_ROOT = "https://sheets.googleapis.com/v4/spreadsheets"


def build_session(config: SheetsConfig) -> requests.Session:
    credentials = service_account.Credentials.from_service_account_info(
        {
            "type": "service_account",
            "client_email": config.client_email,
            "private_key": config.private_key,
            "token_uri": TOKEN_URI,
        },
        scopes=SCOPES,
    )
    return AuthorizedSession(credentials)


class GoogleSheetsClient:
    """Thin wrapper over the Sheets v4 REST API for one spreadsheet."""

    def __init__(self, config: SheetsConfig, session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.config = config
        self.session = session if session is not None else build_session(config)
        self.timeout = timeout

    @property
    def _base(self) -> str:
        return f"{API_ROOT}/{self.config.spreadsheet_id}"

    def _call(self, method: str, url: str, params: Optional[dict] = None, body: Optional[dict] = None) -> dict:
        try:
            r = self.session.request(method, url, params=params, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("sheets_request_failed method=%s url=%s error=%s", method, url, e)
            raise SheetsError(str(e)) from e
        if r.status_code >= 400:
            try:
                message = r.json().get("error", {}).get("message", r.text)
            except ValueError:
                message = r.text
            log.info("sheets_http_error method=%s status=%s message=%s", method, r.status_code, message)
            raise SheetsError(message or f"HTTP {r.status_code}", status=r.status_code)
        return r.json() if r.content else {}

    def _values_url(self, a1_range: str, suffix: str = "") -> str:
        return f"{self._base}/values/{quote(a1_range, safe='')}{suffix}"

    def batch_update(self, requests_: list[dict]) -> dict:
        return self._call("POST", f"{self._base}:batchUpdate", body={"requests": requests_})

    def add_sheet(self, title: str, rows: int = 1000, columns: int = 20, frozen_rows: int = 0) -> dict:
        """Raises ``SheetsError`` when a tab with ``title`` already exists."""
        grid: dict[str, Any] = {"rowCount": rows, "columnCount": columns}
        if frozen_rows:
            grid["frozenRowCount"] = frozen_rows
        return self.batch_update([{"addSheet": {"properties": {"title": title, "gridProperties": grid}}}])

    def get_sheet_id(self, title: str) -> int:
        data = self._call("GET", self._base, params={"fields": "sheets(properties(sheetId,title))"})
        for sheet in data.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == title:
                return int(props["sheetId"])
        raise SheetsError(f'Sheet "{title}" not found')

    def clear(self, a1_range: str) -> dict:
        return self._call("POST", self._values_url(a1_range, ":clear"), body={})

    def update_values(self, a1_range: str, values: list[list], input_option: str = "RAW") -> dict:
        return self._call(
            "PUT",
            self._values_url(a1_range),
            params={"valueInputOption": input_option},
            body={"range": a1_range, "values": values},
        )

    def append_row(self, a1_range: str, row: list, input_option: str = "USER_ENTERED") -> dict:
        return self._call(
            "POST",
            self._values_url(a1_range, ":append"),
            params={"valueInputOption": input_option},
            body={"values": [row]},
        )
