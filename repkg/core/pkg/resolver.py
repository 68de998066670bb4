"""latest 版本解析器

职责:
- 查询上游元数据接口 <registry>/<metadata_path>/<scope>/<name>
- 解析 dist-tags.latest
- 单次请求、短超时，不重试（由调用方决定是否重试）
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request

from repkg.core.exceptions import ResolutionError, ValidationError
from repkg.core.models import PackageMetadata, normalize_scope, validate_version
from repkg.utils.net import join_url, validate_url_scheme

logger = logging.getLogger(__name__)

# 元数据文档大小上限 (16MB)
MAX_METADATA_SIZE = 16 * 1024 * 1024


class VersionResolver:
    """latest 版本解析器"""

    def __init__(
        self,
        registry_url: str,
        metadata_path: str = "-/verdaccio/data/sidebar",
        timeout: float = 2.0,
    ) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.metadata_path = metadata_path.strip("/")
        self.timeout = timeout

    def metadata_url(self, scope: str, name: str) -> str:
        return join_url(self.registry_url, self.metadata_path, normalize_scope(scope), name)

    def fetch_metadata(self, scope: str, name: str) -> PackageMetadata:
        """读取上游元数据

        Raises:
            ResolutionError: 网络失败、非 2xx、JSON 非法或不是对象
        """
        if not scope.strip() or not name.strip():
            raise ResolutionError("scope 和 name 不能为空")
        url = self.metadata_url(scope, name)
        try:
            validate_url_scheme(url, context="metadata")
        except ValidationError as e:
            raise ResolutionError(str(e)) from e

        logger.debug("查询元数据: %s", url)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp:  # nosec B310
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise ResolutionError(f"元数据接口返回 HTTP {status}: {url}")
                body = resp.read(MAX_METADATA_SIZE + 1)
        except urllib.error.HTTPError as e:
            raise ResolutionError(f"元数据接口返回 HTTP {e.code}: {url}") from e
        except (urllib.error.URLError, OSError) as e:
            raise ResolutionError(f"元数据接口不可达: {url} - {e}") from e

        if len(body) > MAX_METADATA_SIZE:
            raise ResolutionError(f"元数据文档过大: {url}")
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ResolutionError(f"元数据不是合法 JSON: {url} - {e}") from e
        if not isinstance(payload, dict):
            raise ResolutionError(f"元数据格式错误（应为对象）: {url}")
        return PackageMetadata.from_dict(payload)

    def resolve_latest(self, scope: str, name: str) -> str:
        """解析 latest 标签对应的具体版本（上游版本号不合法也抛 ResolutionError）"""
        meta = self.fetch_metadata(scope, name)
        if not meta.latest:
            raise ResolutionError(
                f"元数据缺少 dist-tags.latest: {normalize_scope(scope)}/{name}"
            )
        try:
            validate_version(meta.latest)
        except ValidationError as e:
            raise ResolutionError(
                f"上游 latest 版本不合法: {normalize_scope(scope)}/{name} -> {meta.latest!r}"
            ) from e
        logger.info("latest 解析: %s/%s -> %s", normalize_scope(scope), name, meta.latest)
        return meta.latest
