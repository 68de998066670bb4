"""tarball 解压器

职责:
- 解压 gzip 压缩的 tar 包（data 过滤器：拒绝绝对路径、'..'、设备文件、越界链接）
- 校验仅有一个顶层目录（npm 约定为 package/）
- 将顶层目录移动为 <dest_dir>@<version>
- 成功后删除压缩包和已清空的解压目录
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import zlib
from pathlib import Path

from repkg.core.exceptions import ExtractError, FileSystemError

logger = logging.getLogger(__name__)

DEFAULT_TOP_LEVEL = "package"


class ArchiveExtractor:
    """tarball 解压器"""

    def extract(self, archive_path: Path, dest_dir: Path, version: str) -> Path:
        """解压 archive_path 到 dest_dir，并规整为 dest_dir@version

        Raises:
            ExtractError: 压缩包损坏、非 gzip/tar、含不安全成员或目录结构不符
            FileSystemError: 目录移动或清理失败
        """
        final_dir = dest_dir.with_name(f"{dest_dir.name}@{version}")
        if final_dir.exists():
            raise FileSystemError(f"目标目录已存在: {final_dir}")

        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"创建解压目录失败: {dest_dir} - {e}") from e

        try:
            self._unpack(archive_path, dest_dir)
            top = self._top_level_dir(dest_dir)
        except ExtractError:
            shutil.rmtree(dest_dir, ignore_errors=True)
            raise

        try:
            top.rename(final_dir)
            archive_path.unlink(missing_ok=True)
            dest_dir.rmdir()
        except OSError as e:
            raise FileSystemError(f"整理解压目录失败: {dest_dir} - {e}") from e

        logger.info("解压完成: %s -> %s", archive_path.name, final_dir)
        return final_dir

    @staticmethod
    def _unpack(archive_path: Path, dest_dir: Path) -> None:
        try:
            with tarfile.open(archive_path, "r:gz") as tf:
                tf.extractall(path=str(dest_dir), filter="data")
        except tarfile.FilterError as e:
            raise ExtractError(f"压缩包包含不安全的成员: {archive_path.name} - {e}") from e
        except (tarfile.TarError, EOFError, zlib.error) as e:
            raise ExtractError(f"压缩包损坏或不是 gzip tar: {archive_path.name} - {e}") from e
        except OSError as e:
            # gzip.BadGzipFile 也是 OSError 子类
            raise ExtractError(f"解压失败: {archive_path.name} - {e}") from e

    @staticmethod
    def _top_level_dir(dest_dir: Path) -> Path:
        """返回唯一的顶层目录（通常为 package/）"""
        entries = list(dest_dir.iterdir())
        if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
            top = entries[0]
            if top.name != DEFAULT_TOP_LEVEL:
                logger.warning("顶层目录不是 %s/: %s", DEFAULT_TOP_LEVEL, top.name)
            return top
        names = sorted(e.name for e in entries)
        raise ExtractError(
            f"压缩包应只包含一个顶层目录 ({DEFAULT_TOP_LEVEL}/)，实际: {names or '空'}"
        )
