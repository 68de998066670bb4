"""single-flight 合并测试"""

from __future__ import annotations

import threading
import time

import pytest

from repkg.core.singleflight import SingleFlight


def _wait_for(cond, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not cond():
        if time.monotonic() > deadline:
            raise AssertionError("等待超时")
        time.sleep(0.005)


class TestSingleFlight:
    def test_sequential_calls_run_each_time(self) -> None:
        sf: SingleFlight[int] = SingleFlight()
        calls = []
        assert sf.do("k", lambda: calls.append(1) or 1) == 1
        assert sf.do("k", lambda: calls.append(2) or 2) == 2
        assert calls == [1, 2]
        assert "k" not in sf

    def test_concurrent_callers_share_one_execution(self) -> None:
        sf: SingleFlight[str] = SingleFlight()
        release = threading.Event()
        executions = []

        def work() -> str:
            executions.append(threading.current_thread().name)
            release.wait(5)
            return "done"

        results: list[str] = []
        threads = [
            threading.Thread(target=lambda: results.append(sf.do("k", work)))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        _wait_for(lambda: sf.in_flight().get("k") == 7)
        release.set()
        for t in threads:
            t.join(5)

        assert len(executions) == 1
        assert results == ["done"] * 8
        assert sf.in_flight() == {}

    def test_waiters_receive_same_exception(self) -> None:
        sf: SingleFlight[None] = SingleFlight()
        release = threading.Event()
        boom = RuntimeError("boom")

        def work() -> None:
            release.wait(5)
            raise boom

        errors: list[BaseException] = []

        def call() -> None:
            try:
                sf.do("k", work)
            except RuntimeError as e:
                errors.append(e)

        threads = [threading.Thread(target=call) for _ in range(4)]
        for t in threads:
            t.start()
        _wait_for(lambda: sf.in_flight().get("k") == 3)
        release.set()
        for t in threads:
            t.join(5)

        assert len(errors) == 4
        assert all(e is boom for e in errors)

    def test_failure_is_not_remembered(self) -> None:
        sf: SingleFlight[int] = SingleFlight()
        with pytest.raises(ValueError):
            sf.do("k", lambda: int("x"))
        assert sf.do("k", lambda: 3) == 3

    def test_different_keys_run_in_parallel(self) -> None:
        sf: SingleFlight[str] = SingleFlight()
        both_running = threading.Barrier(2, timeout=5)

        def work(key: str) -> str:
            both_running.wait()
            return key

        out: dict[str, str] = {}
        threads = [
            threading.Thread(target=lambda k=k: out.__setitem__(k, sf.do(k, lambda: work(k))))
            for k in ("a", "b")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)
        assert out == {"a": "a", "b": "b"}
