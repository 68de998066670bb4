"""Web 层统一响应辅助函数

消除各 Blueprint 中重复的 jsonify(error=...), 4xx/5xx 模式。
"""

from __future__ import annotations

from flask import Response, jsonify

from repkg.core.exceptions import RepkgError, ValidationError


def error_response(exc: RepkgError) -> tuple[Response, int]:
    """业务异常 → JSON 错误响应，状态码取自异常的 http_status"""
    body: dict = {"error": str(exc), "code": exc.code}
    if isinstance(exc, ValidationError) and exc.details:
        body["details"] = exc.details
    return jsonify(body), exc.http_status
