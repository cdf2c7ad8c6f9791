from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import base64
import binascii
import logging
import os
import re
import sys

from rsm.domain.errors import ConfigurationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    logs_dir: Path


@dataclass(frozen=True)
class BackendConfig:
    url: str
    api_key: str
    timeout: float = 15.0


@dataclass(frozen=True)
class SheetsConfig:
    client_email: str
    private_key: str
    spreadsheet_id: str


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "RetailStoreManager") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, logs_dir=logs)


def _first(env: Mapping[str, str], *names: str) -> str:
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return ""


def load_backend_config(env: Optional[Mapping[str, str]] = None) -> BackendConfig:
    env = os.environ if env is None else env
    url = _first(env, "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL").rstrip("/")
    key = _first(env, "SUPABASE_KEY", "SUPABASE_SERVICE_ROLE_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY")
    if not url:
        raise ConfigurationError("Missing SUPABASE_URL (or NEXT_PUBLIC_SUPABASE_URL)")
    if not key:
        raise ConfigurationError("Missing SUPABASE_KEY (or SUPABASE_SERVICE_ROLE_KEY / NEXT_PUBLIC_SUPABASE_ANON_KEY)")
    try:
        timeout = float(env.get("RSM_HTTP_TIMEOUT") or 15)
    except ValueError as e:
        raise ConfigurationError(f"RSM_HTTP_TIMEOUT must be a number: {e}") from e
    return BackendConfig(url=url, api_key=key, timeout=timeout)


def _decode_private_key(env: Mapping[str, str]) -> str:
    key = ""
    encoded = _first(env, "GOOGLE_PRIVATE_KEY_BASE64")
    if encoded:
        try:
            # wrapped output of `base64 key.pem` carries newlines
            key = base64.b64decode(re.sub(r"\s+", "", encoded), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            log.error("private_key_base64_invalid error=%s", e)

    if not key:
        raw = env.get("GOOGLE_PRIVATE_KEY") or ""
        key = raw.replace("\\n", "\n").strip().strip("'\"")

    return key.replace("\\n", "\n")


def load_sheets_config(env: Optional[Mapping[str, str]] = None) -> SheetsConfig:
    env = os.environ if env is None else env
    email = _first(env, "GOOGLE_SERVICE_ACCOUNT_EMAIL")
    if not email:
        raise ConfigurationError("Missing GOOGLE_SERVICE_ACCOUNT_EMAIL")
    key = _decode_private_key(env)
    if not key:
        raise ConfigurationError("No valid private key found (GOOGLE_PRIVATE_KEY_BASE64 or GOOGLE_PRIVATE_KEY)")
    sheet_id = _first(env, "GOOGLE_SHEET_ID")
    if not sheet_id:
        raise ConfigurationError("Missing GOOGLE_SHEET_ID")
    return SheetsConfig(client_email=email, private_key=key, spreadsheet_id=sheet_id)
