"""按键合并并发调用（single-flight）

同一个键同时只执行一次 fn：第一个调用者执行，其余调用者等待并拿到
同一个返回值或同一个异常。调用结束后键即被移除，之后的调用重新执行。
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Call(Generic[T]):
    """一次进行中的调用"""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: T | None = None
        self.error: BaseException | None = None
        self.waiters = 0


class SingleFlight(Generic[T]):
    """单进程内的按键合并器（线程安全）"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, _Call[T]] = {}

    def do(self, key: str, fn: Callable[[], T]) -> T:
        """执行或等待 key 对应的调用，返回共享结果"""
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.waiters += 1
                leader = False
            else:
                call = _Call()
                self._calls[key] = call
                leader = True

        if not leader:
            logger.debug("等待进行中的调用: %s", key)
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result  # type: ignore[return-value]

        try:
            call.result = fn()
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._lock:
                self._calls.pop(key, None)
            call.done.set()
        return call.result

    def in_flight(self) -> dict[str, int]:
        """进行中的键及其等待者数量"""
        with self._lock:
            return {k: c.waiters for k, c in self._calls.items()}

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._calls
