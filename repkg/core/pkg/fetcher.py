"""tarball 下载器

职责:
- 单次 GET，流式写入目标文件
- 单次读写超时 + 整体截止时间
- 通过 cancel 事件协作取消（进程退出时）
- 失败时删除不完整文件
"""

from __future__ import annotations

import logging
import threading
import time
import urllib.error
import urllib.request
from pathlib import Path

from repkg.core.exceptions import FetchError
from repkg.utils.net import validate_url_scheme

logger = logging.getLogger(__name__)


class ArchiveFetcher:
    """tarball 下载器"""

    def __init__(
        self,
        timeout: float = 60.0,
        chunk_size: int = 64 * 1024,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.cancel_event = cancel_event or threading.Event()

    def fetch(self, url: str, dest_path: Path) -> Path:
        """下载 url 到 dest_path，返回 dest_path

        Raises:
            ValidationError: URL 协议不是 http/https
            FetchError: 传输失败、非 2xx、超时或被取消
        """
        validate_url_scheme(url, context="tarball")
        if self.cancel_event.is_set():
            raise FetchError(f"服务正在退出，放弃下载: {url}", url=url)

        dest_path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self.timeout
        logger.info("下载: %s", url)
        try:
            size = self._stream(url, dest_path, deadline)
        except Exception:
            dest_path.unlink(missing_ok=True)
            raise
        logger.info("已保存: %s (%d 字节)", dest_path, size)
        return dest_path

    def _stream(self, url: str, dest_path: Path, deadline: float) -> int:
        size = 0
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp:  # nosec B310
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise FetchError(f"上游返回 HTTP {status}: {url}", url=url, status=status)
                with open(dest_path, "wb") as f:
                    while True:
                        if self.cancel_event.is_set():
                            raise FetchError(f"下载已取消: {url}", url=url)
                        if time.monotonic() > deadline:
                            raise FetchError(
                                f"下载超时 ({self.timeout:g}s): {url}", url=url, timeout=True,
                            )
                        chunk = resp.read(self.chunk_size)
                        if not chunk:
                            break
                        f.write(chunk)
                        size += len(chunk)
        except urllib.error.HTTPError as e:
            raise FetchError(f"上游返回 HTTP {e.code}: {url}", url=url, status=e.code) from e
        except urllib.error.URLError as e:
            timed_out = isinstance(e.reason, TimeoutError)
            raise FetchError(f"下载失败: {url} - {e.reason}", url=url, timeout=timed_out) from e
        except TimeoutError as e:
            raise FetchError(f"下载超时 ({self.timeout:g}s): {url}", url=url, timeout=True) from e
        except OSError as e:
            raise FetchError(f"下载失败: {url} - {e}", url=url) from e
        return size
