"""服务容器 — 统一依赖注入，避免在路由/CLI 中裸构造核心组件

同一容器内的实例共享状态（single-flight 表、取消事件等），
因此 Web 层和 CLI 层均应通过 get_container() 获取，而非直接构造。

依赖关系图（→ 表示依赖）:
  cache → resolver, fetcher, extractor

用法:
    container = ServiceContainer()
    path = container.cache.ensure_cached(ident)   # 懒加载

    # 显式注入配置
    cfg = Config.from_file("my_config.yml")
    container = ServiceContainer(config=cfg)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from repkg.core.cache_manager import CacheManager
    from repkg.core.config import Config
    from repkg.core.pkg import ArchiveExtractor, ArchiveFetcher, VersionResolver

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器 — 每个实例持有一组共享的核心组件"""

    def __init__(self, config: Config | None = None) -> None:
        self._instances: dict[str, object] = {}
        # cache 的创建会触发 resolver 等属性，需可重入
        self._lock = threading.RLock()
        if config is None:
            from repkg.core.config import get_config
            config = get_config()
        self._config = config

    @property
    def config(self) -> Config:
        return self._config

    def _lazy(self, name: str, factory: Callable[[], object]) -> Any:
        """首次访问时创建实例，并发首访也只创建一次"""
        with self._lock:
            if name not in self._instances:
                self._instances[name] = factory()
            return self._instances[name]

    @property
    def resolver(self) -> VersionResolver:
        from repkg.core.pkg import VersionResolver
        return self._lazy("resolver", lambda: VersionResolver(
            registry_url=self._config.registry_base,
            metadata_path=self._config.metadata_path,
            timeout=self._config.resolve_timeout,
        ))

    @property
    def fetcher(self) -> ArchiveFetcher:
        from repkg.core.pkg import ArchiveFetcher
        return self._lazy("fetcher", lambda: ArchiveFetcher(
            timeout=self._config.fetch_timeout,
            chunk_size=self._config.chunk_size,
        ))

    @property
    def extractor(self) -> ArchiveExtractor:
        from repkg.core.pkg import ArchiveExtractor
        return self._lazy("extractor", ArchiveExtractor)

    @property
    def cache(self) -> CacheManager:
        from repkg.core import cache_manager
        return self._lazy("cache", lambda: cache_manager.CacheManager(
            packages_dir=self._config.packages_dir,
            registry_url=self._config.registry_base,
            resolver=self.resolver,
            fetcher=self.fetcher,
            extractor=self.extractor,
        ))

    def shutdown(self) -> None:
        """取消已创建组件上的进行中操作"""
        if "cache" in self._instances:
            self.cache.shutdown()


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
