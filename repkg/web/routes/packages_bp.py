"""已缓存包的静态文件访问

GET /packages/<scope>/<name>@<version>/<path>
  - 文件: 直接发送
  - 目录: 有 index.html 则发送，否则返回 JSON 目录列表
  - 临时目录 (.staging) 和隐藏路径不对外暴露
"""

from __future__ import annotations

from pathlib import Path

from flask import Blueprint, Response, abort, jsonify, redirect, request, send_from_directory
from werkzeug.security import safe_join

packages_bp = Blueprint("packages", __name__, url_prefix="/packages")


def _packages_root() -> Path:
    from repkg.services.container import get_container
    container = get_container()
    if not container.config.serve_static:
        abort(404)
    return Path(container.config.packages_dir).resolve()


def _listing(directory: Path, subpath: str) -> Response:
    entries = []
    for entry in sorted(directory.iterdir()):
        if entry.name.startswith("."):
            continue
        entries.append({
            "name": entry.name,
            "type": "directory" if entry.is_dir() else "file",
            "size": entry.stat().st_size if entry.is_file() else None,
        })
    return jsonify(path=f"/packages/{subpath}", entries=entries)


@packages_bp.route("/", defaults={"subpath": ""})
@packages_bp.route("/<path:subpath>")
def serve(subpath: str) -> Response:
    root = _packages_root()
    parts = [p for p in subpath.split("/") if p]
    if any(p.startswith(".") for p in parts):
        abort(404)

    target_str = safe_join(str(root), *parts) if parts else str(root)
    if target_str is None:
        abort(404)
    target = Path(target_str)

    if target.is_dir():
        if subpath and not request.path.endswith("/"):
            return redirect(request.path + "/", code=301)
        if (target / "index.html").is_file():
            return send_from_directory(target, "index.html")
        return _listing(target, subpath)
    if target.is_file():
        return send_from_directory(root, "/".join(parts))
    abort(404)
