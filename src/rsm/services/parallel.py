from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Mapping


def fetch_all(calls: Mapping[str, Callable[[], Any]]) -> dict[str, Any]:
    """Run independent reads concurrently and wait for every one of them.

    The reads share no state. An exception from any call propagates once all
    of them have finished.
    """
    if not calls:
        return {}
    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = {name: pool.submit(fn) for name, fn in calls.items()}
    return {name: f.result() for name, f in futures.items()}
