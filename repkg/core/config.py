"""集中配置管理

替代各模块散落的常量（上游地址、超时、缓存目录），提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

import yaml

from repkg.core.exceptions import ConfigError, ValidationError
from repkg.utils.net import validate_url_scheme
from repkg.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configs/default.yml"


@dataclass
class Config:
    """代理全局配置"""

    # 上游 registry
    registry_url: str = "http://localhost:4873"
    metadata_path: str = "-/verdaccio/data/sidebar"
    resolve_timeout: float = 2.0
    fetch_timeout: float = 60.0
    chunk_size: int = 64 * 1024

    # 缓存目录
    packages_dir: str = "packages"

    # 服务
    host: str = "0.0.0.0"  # nosec B104
    port: int = 8001
    serve_static: bool = True
    cors_allow_all: bool = True
    cors_max_age: int = 12 * 3600
    shutdown_timeout: float = 5.0

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认；读取或解析失败抛 ConfigError"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, OSError, ValueError) as e:
            raise ConfigError(f"读取配置文件失败: {path} - {e}") from e
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件字段无效: {path} - {e}") from e
        cfg.extra = extra
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """校验配置取值，非法时抛出 ConfigError"""
        try:
            validate_url_scheme(self.registry_url, context="registry_url")
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        for name in ("resolve_timeout", "fetch_timeout", "shutdown_timeout"):
            if float(getattr(self, name)) <= 0:
                raise ConfigError(f"配置项 {name} 必须大于 0: {getattr(self, name)}")
        if int(self.chunk_size) <= 0:
            raise ConfigError(f"配置项 chunk_size 必须大于 0: {self.chunk_size}")

    @property
    def registry_base(self) -> str:
        return self.registry_url.rstrip("/")

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI / Web 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
