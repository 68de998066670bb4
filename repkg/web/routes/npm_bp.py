"""按需缓存 Blueprint

GET /npm/<scope>/<name>[/<version>]
  - 版本为空或短于 2 个字符时解析上游 latest
  - 缓存就绪后重定向到 /packages/<scope>/<name>@<version>/，
    静态访问关闭时返回纯文本确认
  - 失败由 app 级 RepkgError 处理器转换为 JSON 错误响应
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, redirect

logger = logging.getLogger(__name__)

npm_bp = Blueprint("npm", __name__, url_prefix="/npm")


def _container():  # type: ignore[no-untyped-def]
    from repkg.services.container import get_container
    return get_container()


@npm_bp.route("/<scope>/<name>", defaults={"version": ""}, strict_slashes=False)
@npm_bp.route("/<scope>/<name>/<path:version>")
def fetch_package(scope: str, name: str, version: str) -> Response:
    container = _container()
    ident, path = container.cache.ensure(scope, name, version)
    logger.info("包已就绪: %s -> %s", ident.key, path)
    if container.config.serve_static:
        return redirect(ident.static_path(), code=302)
    return Response(f"已缓存: {ident.key}\n", mimetype="text/plain")
