"""统一异常体系

所有业务异常继承 RepkgError，替代散落的 ValueError / OSError。
Web 层据 http_status 映射响应码，CLI 层据此输出友好提示。
任何一种异常都只影响当前请求，不会终止服务进程。
"""

from __future__ import annotations


class RepkgError(Exception):
    """repkg 基础异常"""

    code: str = "UNKNOWN"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(RepkgError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(RepkgError):
    """输入数据校验失败（包标识非法、URL 协议不允许等）"""

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ResolutionError(RepkgError):
    """上游元数据不可达或内容缺少 dist-tags.latest"""

    code = "RESOLUTION_ERROR"
    http_status = 502


class FetchError(RepkgError):
    """tarball 下载失败：传输错误、非 2xx、超时或被取消"""

    code = "FETCH_ERROR"
    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status: int | None = None,
        timeout: bool = False,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.timeout = timeout
        if timeout:
            self.http_status = 504


class ExtractError(RepkgError):
    """压缩包损坏、格式不符或目录结构不符合预期"""

    code = "EXTRACT_ERROR"
    http_status = 502


class FileSystemError(RepkgError):
    """目录创建、重命名或删除失败"""

    code = "FILESYSTEM_ERROR"
