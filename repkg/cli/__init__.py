"""repkg 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import Any

import click

from repkg import __version__
from repkg.core.config import DEFAULT_CONFIG_FILE, init_config
from repkg.core.exceptions import ConfigError
from repkg.services.container import get_container, reset_container
from repkg.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "-c", "config_path",
    default=lambda: os.getenv("REPKG_CONFIG", DEFAULT_CONFIG_FILE),
    help="配置文件路径",
)
def main(config_path: str) -> None:
    """repkg - npm 包按需缓存代理"""
    setup_logging(
        level=os.getenv("REPKG_LOG_LEVEL", "INFO"),
        json_output=os.getenv("REPKG_LOG_JSON", "") == "1",
    )
    try:
        init_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    reset_container()


# 注册各领域子命令
from repkg.cli.cmd_cache import register as _reg_cache  # noqa: E402
from repkg.cli.cmd_serve import register as _reg_serve  # noqa: E402

_reg_serve(main)
_reg_cache(main)
