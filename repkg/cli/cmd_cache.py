"""CLI — 缓存管理命令"""

from __future__ import annotations

import click

from repkg.cli import _svc
from repkg.core.exceptions import RepkgError


def register(group: click.Group) -> None:
    group.add_command(fetch)
    group.add_command(resolve)
    group.add_command(list_cached)


@click.command()
@click.argument("scope")
@click.argument("name")
@click.argument("version", default="")
def fetch(scope: str, name: str, version: str) -> None:
    """缓存指定包（不指定版本则使用 latest）"""
    try:
        ident, path = _svc().cache.ensure(scope, name, version)
    except RepkgError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    click.echo(f"就绪: {ident.key} -> {path}")


@click.command()
@click.argument("scope")
@click.argument("name")
def resolve(scope: str, name: str) -> None:
    """查询上游 latest 版本（不下载）"""
    from repkg.core.models import validate_package_name
    try:
        validate_package_name(scope, name)
        version = _svc().resolver.resolve_latest(scope, name)
    except RepkgError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    click.echo(version)


@click.command(name="list")
def list_cached() -> None:
    """列出本地已缓存的包"""
    entries = _svc().cache.list_cached()
    if not entries:
        click.echo("没有已缓存的包。")
        return
    for e in entries:
        click.echo(f"  {e.identifier.package_name:40s} {e.identifier.version:16s} {e.path}")
