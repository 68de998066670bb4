"""缓存代理数据模型

数据类:
- PackageIdentifier: 包标识 scope/name@version，唯一的路径/URL 序列化入口
- PackageMetadata:   上游元数据（仅内存中使用，不落盘）
- CacheState:        单个包标识的缓存状态机
- CachedPackage:     已缓存条目（列表查询用）
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from repkg.core.exceptions import ValidationError
from repkg.utils.net import join_url

# 版本号短于该长度视为占位符，需要解析 latest
MIN_VERSION_LENGTH = 2

_NAME_RE = re.compile(r"[A-Za-z0-9._~-]+")
_VERSION_RE = re.compile(r"[A-Za-z0-9.+_-]+")
_MAX_COMPONENT_LENGTH = 214


def _check_component(value: str, field_name: str, pattern: re.Pattern[str]) -> list[str]:
    errors: list[str] = []
    if not value:
        errors.append(f"{field_name} 不能为空")
    elif value in (".", ".."):
        errors.append(f"{field_name} 不能为 '.' 或 '..'")
    elif len(value) > _MAX_COMPONENT_LENGTH:
        errors.append(f"{field_name} 过长: {len(value)} > {_MAX_COMPONENT_LENGTH}")
    elif value.startswith(".") and pattern is _NAME_RE:
        errors.append(f"{field_name} 不能以 '.' 开头: {value!r}")
    elif not pattern.fullmatch(value):
        errors.append(f"{field_name} 包含非法字符: {value!r}")
    return errors


def normalize_scope(scope: str) -> str:
    """统一 scope 写法为 '@org'"""
    scope = scope.strip()
    if scope and not scope.startswith("@"):
        scope = "@" + scope
    return scope


def needs_resolution(version: str | None) -> bool:
    """版本为空或过短（如路由中的 '/'、'-'）时需要解析 latest"""
    return version is None or len(version.strip().strip("/")) < MIN_VERSION_LENGTH


@dataclass(frozen=True)
class PackageIdentifier:
    """包标识 — 校验后才允许参与任何文件系统或网络操作

    通过 parse() 构造；直接构造时也会在 __post_init__ 中校验。
    """

    scope: str
    name: str
    version: str

    def __post_init__(self) -> None:
        scope_body = self.scope[1:] if self.scope.startswith("@") else self.scope
        errors = (
            _check_component(scope_body, "scope", _NAME_RE)
            + _check_component(self.name, "name", _NAME_RE)
            + _check_component(self.version, "version", _VERSION_RE)
        )
        if not self.scope.startswith("@"):
            errors.insert(0, f"scope 必须以 '@' 开头: {self.scope!r}")
        if errors:
            raise ValidationError(
                f"包标识不合法: {self.scope}/{self.name}@{self.version}", details=errors,
            )

    @classmethod
    def parse(cls, scope: str, name: str, version: str) -> PackageIdentifier:
        """从路由/CLI 参数构造（scope 可省略 '@'，版本去除首尾 '/'）"""
        return cls(
            scope=normalize_scope(scope),
            name=name.strip(),
            version=version.strip().strip("/"),
        )

    @property
    def package_name(self) -> str:
        return f"{self.scope}/{self.name}"

    @property
    def key(self) -> str:
        """规范键: scope/name@version"""
        return f"{self.package_name}@{self.version}"

    @property
    def tarball_name(self) -> str:
        return f"{self.name}-{self.version}.tgz"

    @property
    def entry_name(self) -> str:
        return f"{self.name}@{self.version}"

    def cache_dir(self, root: str | Path) -> Path:
        """缓存条目目录: <root>/<scope>/<name>@<version>"""
        return Path(root) / self.scope / self.entry_name

    def tarball_url(self, registry_base: str) -> str:
        """上游 tarball 地址: <base>/<scope>/<name>/-/<name>-<version>.tgz"""
        return join_url(registry_base, self.scope, self.name, "-", self.tarball_name)

    def static_path(self) -> str:
        """对外静态访问路径"""
        return f"/packages/{self.scope}/{self.entry_name}/"

    def staging_prefix(self) -> str:
        """临时目录前缀，用于识别同一包标识遗留的中间产物"""
        return f"{self.scope[1:]}+{self.name}@{self.version}="

    def __str__(self) -> str:
        return self.key


@dataclass
class PackageMetadata:
    """上游元数据中与版本解析相关的字段"""

    id: str = ""
    name: str = ""
    description: str = ""
    dist_tags: dict[str, str] = field(default_factory=dict)

    @property
    def latest(self) -> str:
        return self.dist_tags.get("latest", "")

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> PackageMetadata:
        tags = payload.get("dist-tags")
        if not isinstance(tags, dict):
            tags = {}
        return cls(
            id=str(payload.get("_id") or ""),
            name=str(payload.get("name") or ""),
            description=str(payload.get("description") or ""),
            dist_tags={str(k): str(v) for k, v in tags.items() if v},
        )


class CacheState(str, Enum):
    """单个包标识的缓存状态

    NOT_CHECKED -> CACHED | NEEDS_FETCH
    NEEDS_FETCH -> DOWNLOADING -> DOWNLOADED | FAILED
    DOWNLOADED  -> EXTRACTING  -> CACHED | FAILED
    """

    NOT_CHECKED = "not_checked"
    NEEDS_FETCH = "needs_fetch"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    EXTRACTING = "extracting"
    CACHED = "cached"
    FAILED = "failed"


@dataclass(frozen=True)
class CachedPackage:
    """已缓存条目"""

    identifier: PackageIdentifier
    path: Path

    def to_dict(self) -> dict[str, str]:
        return {
            "scope": self.identifier.scope,
            "name": self.identifier.name,
            "version": self.identifier.version,
            "path": self.identifier.static_path(),
        }


def validate_package_name(scope: str, name: str) -> None:
    """仅校验 scope/name（解析 latest 前使用，版本尚未确定）"""
    scope = normalize_scope(scope)
    errors = _check_component(scope[1:], "scope", _NAME_RE) + _check_component(
        name.strip(), "name", _NAME_RE,
    )
    if errors:
        raise ValidationError(f"包名不合法: {scope}/{name}", details=errors)


def validate_version(version: str) -> None:
    """校验具体版本号（上游返回的 latest 等，不接受占位符）"""
    errors = _check_component(version, "version", _VERSION_RE)
    if errors:
        raise ValidationError(f"版本号不合法: {version!r}", details=errors)
