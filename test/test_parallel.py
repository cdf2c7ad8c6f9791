import threading
import time

import pytest

from rsm.services.parallel import fetch_all


def test_fetch_all_keys_results_by_name():
    assert fetch_all({"products": lambda: ["a"], "count": lambda: 3}) == {"products": ["a"], "count": 3}


def test_fetch_all_empty_mapping():
    assert fetch_all({}) == {}


def test_fetch_all_runs_calls_concurrently():
    barrier = threading.Barrier(2, timeout=5)

    def meet():
        barrier.wait()
        return True

    assert fetch_all({"a": meet, "b": meet}) == {"a": True, "b": True}


def test_fetch_all_waits_for_every_call_before_raising():
    finished = []

    def slow():
        time.sleep(0.05)
        finished.append("slow")
        return 1

    def broken():
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError, match="backend down"):
        fetch_all({"slow": slow, "broken": broken})
    assert finished == ["slow"]
