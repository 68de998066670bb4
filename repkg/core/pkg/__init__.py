"""上游包获取模块

拆分说明:
- resolver.py:  latest 版本解析（元数据接口）
- fetcher.py:   tarball 流式下载
- extractor.py: tarball 解压与目录规整
"""

from repkg.core.pkg.extractor import ArchiveExtractor
from repkg.core.pkg.fetcher import ArchiveFetcher
from repkg.core.pkg.resolver import VersionResolver

__all__ = [
    "ArchiveExtractor",
    "ArchiveFetcher",
    "VersionResolver",
]
