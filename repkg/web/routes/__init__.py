"""Web 路由模块 - Blueprint 集合

拆分说明:
- npm_bp.py:      /npm/<scope>/<name>/<version> 按需缓存并重定向
- packages_bp.py: /packages/... 已缓存目录的静态文件访问
- core_bp.py:     /api/... 健康检查与缓存状态查询
"""

from repkg.web.routes.core_bp import core_bp
from repkg.web.routes.npm_bp import npm_bp
from repkg.web.routes.packages_bp import packages_bp

__all__ = [
    "core_bp",
    "npm_bp",
    "packages_bp",
]
