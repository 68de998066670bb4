"""tarball 下载测试"""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from repkg.core.exceptions import FetchError, ValidationError
from repkg.core.pkg import ArchiveFetcher

URL = "http://registry.test:4873/@foo/bar/-/bar-1.2.3.tgz"


class TestFetch:
    def test_streams_to_destination(self, upstream, tmp_path: Path) -> None:
        body = b"x" * 10_000
        upstream.add_bytes(URL, body)
        dest = tmp_path / "dl" / "bar-1.2.3.tgz"
        fetcher = ArchiveFetcher(timeout=5, chunk_size=1024)
        assert fetcher.fetch(URL, dest) == dest
        assert dest.read_bytes() == body
        assert upstream.timeouts == [5]

    def test_http_404(self, upstream, tmp_path: Path) -> None:
        upstream.add_error(URL, 404)
        dest = tmp_path / "bar.tgz"
        with pytest.raises(FetchError) as exc:
            ArchiveFetcher().fetch(URL, dest)
        assert exc.value.status == 404
        assert exc.value.url == URL
        assert exc.value.http_status == 502
        assert not dest.exists()

    def test_non_2xx_status_without_http_error(self, upstream, tmp_path: Path) -> None:
        upstream.add_bytes(URL, b"", status=304)
        with pytest.raises(FetchError, match="HTTP 304"):
            ArchiveFetcher().fetch(URL, tmp_path / "bar.tgz")

    def test_transport_failure(self, upstream, tmp_path: Path) -> None:
        with pytest.raises(FetchError, match="下载失败"):
            ArchiveFetcher().fetch(URL, tmp_path / "bar.tgz")

    def test_rejects_non_http_scheme(self, upstream, tmp_path: Path) -> None:
        with pytest.raises(ValidationError):
            ArchiveFetcher().fetch("file:///etc/passwd", tmp_path / "x.tgz")
        assert upstream.count() == 0

    def test_cancelled_before_start(self, upstream, tmp_path: Path) -> None:
        upstream.add_bytes(URL, b"data")
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(FetchError, match="放弃下载"):
            ArchiveFetcher(cancel_event=cancel).fetch(URL, tmp_path / "x.tgz")
        assert upstream.count() == 0

    def test_cancelled_mid_stream_removes_partial(self, upstream, tmp_path: Path) -> None:
        fetcher = ArchiveFetcher(chunk_size=1024)
        upstream.add_bytes(URL, b"y" * 4096, on_read=fetcher.cancel_event.set)
        dest = tmp_path / "x.tgz"
        with pytest.raises(FetchError, match="已取消"):
            fetcher.fetch(URL, dest)
        assert not dest.exists()

    def test_deadline_exceeded_removes_partial(self, upstream, tmp_path: Path) -> None:
        upstream.add_bytes(URL, b"z" * 4096, delay=0.05)
        dest = tmp_path / "x.tgz"
        with pytest.raises(FetchError) as exc:
            ArchiveFetcher(timeout=0.01, chunk_size=1024).fetch(URL, dest)
        assert exc.value.timeout is True
        assert exc.value.http_status == 504
        assert not dest.exists()
