"""Gunicorn 生产配置

用法:
  REPKG_CONFIG=configs/default.yml \
  gunicorn --config deploy/gunicorn.conf.py repkg.web.app:app

single-flight 在进程内合并同一版本的并发请求；多 worker 时同一版本的下载
由 packages/.locks 下的 flock 在进程间串行化，后到的 worker 等锁后直接命中缓存。
"""

import os

# ---------- 网络 ----------
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8001")

# ---------- 并发 ----------
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
threads = int(os.getenv("GUNICORN_THREADS", "16"))
worker_class = "gthread"
timeout = 120

# ---------- 日志 ----------
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

# ---------- 进程管理 ----------
graceful_timeout = 5
keepalive = 5


def on_starting(server):  # noqa: ARG001
    """master 启动时加载配置并清理上次遗留的临时目录（此时还没有 worker）"""
    from repkg.core.config import DEFAULT_CONFIG_FILE, init_config
    from repkg.services.container import get_container, reset_container
    from repkg.utils.logger import setup_logging

    setup_logging(
        level=os.getenv("REPKG_LOG_LEVEL", "INFO"),
        json_output=os.getenv("REPKG_LOG_JSON", "") == "1",
    )
    init_config(os.getenv("REPKG_CONFIG", DEFAULT_CONFIG_FILE))
    reset_container()
    get_container().cache.sweep_staging()


def worker_exit(server, worker):  # noqa: ARG001
    """worker 正常退出时取消进行中的下载

    graceful_timeout 到期后 worker 被 SIGKILL，此钩子不会执行；内核随进程释放 flock，
    遗留的临时目录由同一版本的下一次尝试或下次启动时的 sweep_staging 清理。
    """
    from repkg.services.container import get_container
    get_container().shutdown()
