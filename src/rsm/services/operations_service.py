from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from rsm.domain.errors import BackendError
from rsm.repositories.contracts import BackendRepository
from rsm.repositories.supabase_repo import PRODUCTS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthReport:
    status: str
    message: str
    time: str
    products: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OperationsService:
    """Keep-alive probe hit by an external pinger so the backend does not idle."""

    def __init__(self, repo: BackendRepository, clock: Callable[[], datetime] = _utcnow):
        self.repo = repo
        self.clock = clock

    def keep_alive(self) -> HealthReport:
        now = self.clock().isoformat()
        try:
            count = self.repo.probe_count(PRODUCTS)
        except BackendError as e:
            log.error("keep_alive_failed error=%s", e)
            return HealthReport(status="error", message=str(e), time=now)
        return HealthReport(status="ok", message="Database is alive!", time=now, products=count)
