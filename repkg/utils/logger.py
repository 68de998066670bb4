"""repkg 日志配置

支持普通文本和结构化 JSON 两种输出格式。
缓存流程的日志可通过 extra={"package": key} 附带包标识，JSON 输出时单独成字段。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于日志平台采集

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "repkg.core.cache_manager",
            "message": "...",
            "thread": "Thread-3",
            "package": "@foo/bar@1.2.3" (仅在记录携带时),
            "exception": "traceback..." (仅在有异常时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            # 使用 record.created，记录事件发生时间而非格式化时间
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        package = getattr(record, "package", None)
        if package:
            log_entry["package"] = package
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式，否则使用人类可读格式

    说明:
        - 输出到 stderr
        - 清理已有 handlers，重复调用不会重复输出
    """
    root = logging.getLogger()
    reset_logging()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)


def reset_logging() -> None:
    """移除根日志器上的所有 handlers"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
