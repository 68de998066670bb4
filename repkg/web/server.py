"""开发/单机部署用的 WSGI 服务与优雅退出

收到 SIGINT/SIGTERM 后:
  1. 停止接收新连接
  2. 最多等待 shutdown_timeout 秒，让进行中的请求自然结束
  3. 仍未结束的请求：取消其下载（临时目录随之清理），然后退出

生产环境使用 gunicorn（deploy/gunicorn.conf.py），由 gunicorn 负责同样的流程。
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from typing import Any, Callable, Iterable

from werkzeug.serving import make_server
from werkzeug.wsgi import ClosingIterator

logger = logging.getLogger(__name__)

# 取消下载后等待清理的时间
CANCEL_GRACE_SECONDS = 1.0


class InflightTracker:
    """WSGI 中间件：统计进行中的请求数"""

    def __init__(self, wsgi_app: Callable[..., Iterable[bytes]]) -> None:
        self.wsgi_app = wsgi_app
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._active = 0

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        with self._lock:
            self._active += 1
        try:
            body = self.wsgi_app(environ, start_response)
        except Exception:
            self._leave()
            raise
        # 响应体发送完毕（close）后才算请求结束
        return ClosingIterator(body, self._leave)

    def _leave(self) -> None:
        with self._lock:
            self._active -= 1
            if self._active == 0:
                self._idle.notify_all()

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    def wait_idle(self, timeout: float) -> bool:
        """等待所有请求结束，超时返回 False"""
        deadline = time.monotonic() + timeout
        with self._lock:
            while self._active > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True


def run_server(host: str = "0.0.0.0", port: int = 8001) -> None:  # nosec B104
    """启动服务并阻塞，直到收到退出信号"""
    from repkg.services.container import get_container
    from repkg.web.app import app

    container = get_container()
    container.cache.sweep_staging()
    shutdown_timeout = container.config.shutdown_timeout

    tracker = InflightTracker(app.wsgi_app)
    app.wsgi_app = tracker  # type: ignore[method-assign]
    server = make_server(host, port, app, threaded=True)

    stop = threading.Event()

    def _on_signal(signum: int, _frame: Any) -> None:
        logger.info("收到信号 %s，准备退出 ...", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    worker = threading.Thread(target=server.serve_forever, name="repkg-server", daemon=True)
    worker.start()
    logger.info("repkg 已启动: http://%s:%d (上游 %s)", host, port, container.config.registry_url)

    while not stop.wait(0.5):
        pass
    server.shutdown()
    if not tracker.wait_idle(shutdown_timeout):
        logger.warning(
            "等待 %g 秒后仍有 %d 个请求未完成，取消下载",
            shutdown_timeout, tracker.active,
        )
        container.shutdown()
        tracker.wait_idle(CANCEL_GRACE_SECONDS)
    server.server_close()
    logger.info("服务已退出")
