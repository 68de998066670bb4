"""npm 缓存代理 Web 服务（基于 Flask）

提供：按需缓存 (/npm)、静态访问 (/packages)、运维 API (/api)。

启动方式:
  repkg serve --port 8001
  gunicorn --config deploy/gunicorn.conf.py repkg.web.app:app
"""

from __future__ import annotations

import logging

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from repkg.core.exceptions import RepkgError
from repkg.web.responses import error_response
from repkg.web.routes import core_bp, npm_bp, packages_bp

logger = logging.getLogger(__name__)

CORS_ALLOW_METHODS = "GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS"
CORS_ALLOW_HEADERS = "Authorization, Origin, Content-Length, Content-Type"

app = Flask(__name__)
app.register_blueprint(npm_bp)
app.register_blueprint(packages_bp)
app.register_blueprint(core_bp)


# =========================================================================
# 全局错误处理 — 任何失败都只影响当前请求
# =========================================================================


@app.errorhandler(RepkgError)
def handle_repkg_error(exc: RepkgError):
    """业务异常按类型映射状态码（校验 400，上游 502/504，本地 500）"""
    if exc.http_status >= 500:
        logger.warning("请求失败 %s: [%s] %s", request.path, exc.code, exc)
    return error_response(exc)


@app.errorhandler(HTTPException)
def handle_http_exception(exc: HTTPException):
    """将所有 HTTP 异常统一返回 JSON"""
    return jsonify(error=exc.description), exc.code


@app.errorhandler(Exception)
def handle_generic_exception(exc: Exception):  # noqa: ARG001
    """捕获未处理异常，返回 500 JSON"""
    logger.exception("未处理的异常")
    return jsonify(error="服务器内部错误"), 500


# =========================================================================
# 跨域
# =========================================================================


@app.after_request
def apply_cors(resp: Response) -> Response:
    from repkg.services.container import get_container
    cfg = get_container().config
    if not cfg.cors_allow_all:
        return resp
    origin = request.headers.get("Origin")
    if origin:
        # 允许携带凭据时不能返回 '*'，回显请求来源
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Access-Control-Allow-Credentials"] = "true"
        resp.headers.add("Vary", "Origin")
    else:
        resp.headers["Access-Control-Allow-Origin"] = "*"
    if request.method == "OPTIONS":
        resp.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
        resp.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
        resp.headers["Access-Control-Max-Age"] = str(cfg.cors_max_age)
    return resp
