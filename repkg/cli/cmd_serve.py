"""CLI — 服务启动命令"""

from __future__ import annotations

import click

from repkg.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(serve)


@click.command()
@click.option("--host", default=None, help="监听地址（默认取配置 host）")
@click.option("--port", "-p", default=None, type=int, help="监听端口（默认取配置 port）")
def serve(host: str | None, port: int | None) -> None:
    """启动缓存代理服务（SIGINT/SIGTERM 优雅退出）"""
    from repkg.web.server import run_server
    cfg = _svc().config
    run_server(host=host or cfg.host, port=port or cfg.port)
