"""测试共享 fixture — 模拟上游 registry + 内存构造 tarball

upstream fixture 替换 urllib.request.urlopen，按 URL 返回预设响应并记录调用:

    upstream.add_json(".../-/verdaccio/data/sidebar/@foo/bar", {...})
    upstream.add_tarball(".../@foo/bar/-/bar-1.2.3.tgz", make_tarball({...}))
    upstream.add_error(".../x.tgz", 404)
    assert upstream.count(url) == 1
"""

from __future__ import annotations

import io
import json
import tarfile
import threading
import time
import urllib.error
from collections import Counter
from pathlib import Path
from typing import Any, Callable

import pytest

import repkg.core.config as cfgmod
from repkg.services.container import reset_container

REGISTRY = "http://registry.test:4873"


def build_tarball(files: dict[str, bytes | str], *, top: str = "package") -> bytes:
    """构造 gzip tar 包；top 为空时文件直接放在根下"""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for rel, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(f"{top}/{rel}" if top else rel)
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class _FakeResponse:
    def __init__(
        self,
        body: bytes,
        status: int = 200,
        *,
        delay: float = 0.0,
        on_read: Callable[[], None] | None = None,
    ) -> None:
        self._buf = io.BytesIO(body)
        self.status = status
        self._delay = delay
        self._on_read = on_read

    def read(self, size: int = -1) -> bytes:
        if self._delay:
            time.sleep(self._delay)
        if self._on_read is not None:
            self._on_read()
        return self._buf.read(size)

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *exc: Any) -> None:
        self._buf.close()


class FakeUpstream:
    """线程安全的 urlopen 替身"""

    def __init__(self) -> None:
        self._routes: dict[str, Callable[[], _FakeResponse]] = {}
        self._calls: Counter[str] = Counter()
        self._lock = threading.Lock()
        self.timeouts: list[float | None] = []

    def add(self, url: str, handler: Callable[[], _FakeResponse]) -> None:
        self._routes[url] = handler

    def add_json(self, url: str, payload: Any) -> None:
        body = json.dumps(payload).encode()
        self.add(url, lambda: _FakeResponse(body))

    def add_bytes(
        self,
        url: str,
        body: bytes,
        status: int = 200,
        *,
        delay: float = 0.0,
        on_read: Callable[[], None] | None = None,
    ) -> None:
        self.add(url, lambda: _FakeResponse(body, status, delay=delay, on_read=on_read))

    def add_tarball(self, url: str, body: bytes) -> None:
        self.add_bytes(url, body)

    def add_error(self, url: str, code: int) -> None:
        def _raise() -> _FakeResponse:
            raise urllib.error.HTTPError(url, code, "error", hdrs=None, fp=None)  # type: ignore[arg-type]
        self.add(url, _raise)

    def count(self, url: str | None = None) -> int:
        with self._lock:
            if url is None:
                return sum(self._calls.values())
            return self._calls[url]

    def urlopen(self, url: Any, timeout: float | None = None, **_: Any) -> _FakeResponse:
        url = url if isinstance(url, str) else url.full_url
        with self._lock:
            self._calls[url] += 1
            self.timeouts.append(timeout)
        handler = self._routes.get(url)
        if handler is None:
            raise urllib.error.URLError(f"connection refused: {url}")
        return handler()


@pytest.fixture()
def upstream(monkeypatch: pytest.MonkeyPatch) -> FakeUpstream:
    fake = FakeUpstream()
    monkeypatch.setattr("urllib.request.urlopen", fake.urlopen)
    return fake


@pytest.fixture()
def make_tarball() -> Callable[..., bytes]:
    return build_tarball


@pytest.fixture()
def registry() -> str:
    return REGISTRY


@pytest.fixture()
def app_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """独立的全局配置 + 干净的服务容器"""
    cfg = cfgmod.Config(
        registry_url=REGISTRY,
        packages_dir=str(tmp_path / "packages"),
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield cfg
    reset_container()
