"""包缓存管理器

按需把上游 npm 包缓存到本地目录，并保证每个包标识在磁盘上只出现一次:

  packages/{scope}/{name}@{version}/    缓存条目（目录存在即视为已缓存）
  packages/.staging/<prefix>XXXX/       单次尝试的临时目录（下载 + 解压）
  packages/.locks/<prefix>lock          包标识的跨进程文件锁（flock）

核心逻辑:
  - ensure_cached() 先检查缓存目录，存在则直接返回（无网络、无副作用）
  - 不存在时按包标识做 single-flight，同一标识同时只有一次下载 + 解压
  - 下载和解压都在独立的临时目录中进行，成功后一次 rename 发布到最终路径
  - 任何失败都删除临时目录并抛出具体异常，最终路径上不会出现半成品
  - 同一标识的尝试在进程间由 flock 串行化；持锁期间同前缀的临时目录必然已无人使用，
    此时清理上次被放弃的尝试（进程被杀、超时）留下的临时目录

用法:
    from repkg.services.container import get_container

    cm = get_container().cache
    ident, path = cm.ensure("@foo", "bar")          # 解析 latest
    path = cm.ensure_cached(PackageIdentifier.parse("@foo", "bar", "1.2.3"))
"""

from __future__ import annotations

import fcntl
import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from repkg.core.exceptions import FileSystemError, RepkgError
from repkg.core.models import (
    CachedPackage,
    CacheState,
    PackageIdentifier,
    needs_resolution,
    normalize_scope,
    validate_package_name,
)
from repkg.core.pkg import ArchiveExtractor, ArchiveFetcher, VersionResolver
from repkg.core.singleflight import SingleFlight

logger = logging.getLogger(__name__)

STAGING_DIRNAME = ".staging"
LOCKS_DIRNAME = ".locks"


class CacheManager:
    """包缓存编排器 — 解析、下载、解压、发布"""

    def __init__(
        self,
        packages_dir: str | Path,
        registry_url: str,
        resolver: VersionResolver | None = None,
        fetcher: ArchiveFetcher | None = None,
        extractor: ArchiveExtractor | None = None,
    ) -> None:
        self.packages_dir = Path(packages_dir)
        self.staging_root = self.packages_dir / STAGING_DIRNAME
        self.lock_root = self.packages_dir / LOCKS_DIRNAME
        self.registry_url = registry_url.rstrip("/")
        self.resolver = resolver or VersionResolver(self.registry_url)
        self.fetcher = fetcher or ArchiveFetcher()
        self.extractor = extractor or ArchiveExtractor()
        self._flight: SingleFlight[Path] = SingleFlight()
        self._states: dict[str, CacheState] = {}
        self._states_lock = threading.Lock()

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def cache_path(self, identifier: PackageIdentifier) -> Path:
        return identifier.cache_dir(self.packages_dir)

    def is_cached(self, identifier: PackageIdentifier) -> bool:
        return self.cache_path(identifier).is_dir()

    def list_cached(self) -> list[CachedPackage]:
        """扫描缓存目录，列出所有已缓存条目（忽略隐藏目录和非法名称）"""
        if not self.packages_dir.is_dir():
            return []
        entries: list[CachedPackage] = []
        for scope_dir in sorted(self.packages_dir.iterdir()):
            if not scope_dir.is_dir() or not scope_dir.name.startswith("@"):
                continue
            for entry in sorted(scope_dir.iterdir()):
                if not entry.is_dir() or "@" not in entry.name:
                    continue
                name, version = entry.name.split("@", 1)
                try:
                    ident = PackageIdentifier(scope_dir.name, name, version)
                except RepkgError:
                    logger.debug("忽略非法缓存目录: %s", entry)
                    continue
                entries.append(CachedPackage(identifier=ident, path=entry))
        return entries

    def in_flight(self) -> dict[str, CacheState]:
        """进行中的包标识及其当前状态"""
        with self._states_lock:
            return dict(self._states)

    # ------------------------------------------------------------------
    # 缓存（解析 + 下载 + 解压）
    # ------------------------------------------------------------------

    def ensure(
        self, scope: str, name: str, version: str | None = "",
    ) -> tuple[PackageIdentifier, Path]:
        """版本为空或过短时先解析 latest，再确保缓存存在"""
        validate_package_name(scope, name)
        if needs_resolution(version):
            version = self.resolver.resolve_latest(normalize_scope(scope), name.strip())
        identifier = PackageIdentifier.parse(scope, name, version or "")
        return identifier, self.ensure_cached(identifier)

    def ensure_cached(self, identifier: PackageIdentifier) -> Path:
        """确保包已缓存，返回缓存目录

        Raises:
            FetchError / ExtractError / FileSystemError / ValidationError
        """
        if self.is_cached(identifier):
            logger.debug("缓存命中: %s", identifier.key, extra={"package": identifier.key})
            return self.cache_path(identifier)
        return self._flight.do(identifier.key, lambda: self._populate(identifier))

    def _populate(self, identifier: PackageIdentifier) -> Path:
        key = identifier.key
        final_dir = self.cache_path(identifier)
        # 等锁期间可能已被上一次调用发布
        if final_dir.is_dir():
            return final_dir

        with self._identifier_lock(identifier.staging_prefix()):
            # 其他进程持锁期间可能已发布
            if final_dir.is_dir():
                logger.debug("缓存已由其他进程发布: %s", final_dir, extra={"package": key})
                return final_dir
            return self._populate_locked(identifier, final_dir)

    def _populate_locked(self, identifier: PackageIdentifier, final_dir: Path) -> Path:
        key = identifier.key
        self._transition(key, CacheState.NEEDS_FETCH)
        self._purge_stale(identifier)
        staging = self._make_staging(identifier)
        try:
            archive = staging / identifier.tarball_name
            url = identifier.tarball_url(self.registry_url)

            self._transition(key, CacheState.DOWNLOADING)
            self.fetcher.fetch(url, archive)
            self._transition(key, CacheState.DOWNLOADED)

            self._transition(key, CacheState.EXTRACTING)
            extracted = self.extractor.extract(
                archive, staging / identifier.name, identifier.version,
            )
            self._publish(extracted, final_dir)
            self._transition(key, CacheState.CACHED)
        except Exception as e:
            self._transition(key, CacheState.FAILED)
            logger.error("缓存失败: %s - %s", key, e, extra={"package": key})
            raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)
            with self._states_lock:
                self._states.pop(key, None)

        logger.info("已缓存: %s -> %s", key, final_dir, extra={"package": key})
        return final_dir

    def _publish(self, extracted: Path, final_dir: Path) -> None:
        """原子发布：rename 到最终路径"""
        try:
            final_dir.parent.mkdir(parents=True, exist_ok=True)
            os.rename(extracted, final_dir)
        except OSError as e:
            if final_dir.is_dir():
                # 其他进程已发布同一版本，丢弃本次结果
                logger.info("缓存已由其他进程发布: %s", final_dir)
                return
            raise FileSystemError(f"发布缓存目录失败: {final_dir} - {e}") from e

    # ------------------------------------------------------------------
    # 跨进程锁 / 临时目录
    # ------------------------------------------------------------------

    @contextmanager
    def _identifier_lock(self, prefix: str, *, blocking: bool = True) -> Iterator[bool]:
        """持有 prefix 对应的排他 flock，进程退出时由内核释放

        blocking=False 时拿不到锁立即返回 False（其他进程正在处理该标识）。
        """
        lock_path = self.lock_root / f"{prefix}lock"
        try:
            self.lock_root.mkdir(parents=True, exist_ok=True)
            fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise FileSystemError(f"创建锁文件失败: {lock_path} - {e}") from e
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                yield False
                return
            yield True
        finally:
            os.close(fd)

    def _make_staging(self, identifier: PackageIdentifier) -> Path:
        try:
            self.staging_root.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(
                prefix=identifier.staging_prefix(), dir=self.staging_root,
            ))
        except OSError as e:
            raise FileSystemError(f"创建临时目录失败: {self.staging_root} - {e}") from e

    def _purge_stale(self, identifier: PackageIdentifier) -> None:
        """清理同一包标识此前被放弃的临时目录（调用方须持有该标识的锁）"""
        if not self.staging_root.is_dir():
            return
        for stale in self.staging_root.glob(f"{identifier.staging_prefix()}*"):
            logger.warning("清理遗留临时目录: %s", stale)
            shutil.rmtree(stale, ignore_errors=True)

    def sweep_staging(self) -> int:
        """清理所有无人持锁的临时目录（服务启动时调用），返回清理数量"""
        if not self.staging_root.is_dir():
            return 0
        removed = 0
        for stale in self.staging_root.iterdir():
            prefix = stale.name.split("=", 1)[0] + "="
            with self._identifier_lock(prefix, blocking=False) as acquired:
                if not acquired:
                    logger.debug("跳过进行中的临时目录: %s", stale)
                    continue
                shutil.rmtree(stale, ignore_errors=True)
                removed += 1
        if removed:
            logger.warning("启动时清理遗留临时目录 %d 个", removed)
        return removed

    # ------------------------------------------------------------------
    # 状态 / 生命周期
    # ------------------------------------------------------------------

    def _transition(self, key: str, state: CacheState) -> None:
        with self._states_lock:
            self._states[key] = state
        logger.debug("状态变更: %s -> %s", key, state.value, extra={"package": key})

    def shutdown(self) -> None:
        """通知进行中的下载放弃（已完成的缓存不受影响）"""
        logger.info("取消进行中的下载: %d 个", len(self.in_flight()))
        self.fetcher.cancel_event.set()
