"""运维 API Blueprint

职责:
- 健康检查
- 已缓存条目列表
- 进行中的缓存任务及其状态
"""

from __future__ import annotations

from flask import Blueprint, Response, jsonify

from repkg import __version__

core_bp = Blueprint("core", __name__, url_prefix="/api")


def _cache():  # type: ignore[no-untyped-def]
    from repkg.services.container import get_container
    return get_container().cache


@core_bp.route("/health", methods=["GET"])
def health() -> Response:
    return jsonify(status="ok", version=__version__)


@core_bp.route("/packages", methods=["GET"])
def list_packages() -> Response:
    """列出已缓存的包"""
    entries = [e.to_dict() for e in _cache().list_cached()]
    return jsonify(packages=entries, total=len(entries))


@core_bp.route("/packages/inflight", methods=["GET"])
def list_inflight() -> Response:
    """列出进行中的缓存任务"""
    states = {key: state.value for key, state in _cache().in_flight().items()}
    return jsonify(inflight=states)
