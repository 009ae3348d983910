from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ApiError(Exception):
    """统一的业务错误，由异常处理器转换成 {"error": message} 响应。"""
    code: str
    message: str
    http_status: int = 500
    data: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


class ConfigurationError(ApiError):
    """必需的密钥未配置：修复前所有调用都会失败。"""

    def __init__(self, message: str = "API keys not configured", missing: Optional[list[str]] = None) -> None:
        super().__init__(code="CONFIGURATION", message=message, data={"missing": list(missing or [])})


class InvalidProviderError(ApiError):
    def __init__(self, message: str = "Invalid model") -> None:
        super().__init__(code="INVALID_PROVIDER", message=message)


class UpstreamError(ApiError):
    """上游返回非 2xx，不重试。"""

    def __init__(self, status: int, provider: str, detail: str = "") -> None:
        super().__init__(
            code="UPSTREAM",
            message=f"{provider} upstream returned HTTP {status}",
            data={"status": status, "provider": provider, "detail": detail},
        )
        self.status = status
        self.provider = provider


class CredentialError(ApiError):
    def __init__(self, message: str = "access token exchange failed") -> None:
        super().__init__(code="CREDENTIAL", message=message)


class DecodeError(ApiError):
    """单条流记录无法解析；由 relay 吞掉，流继续。"""

    def __init__(self, record: str, reason: str = "") -> None:
        super().__init__(code="DECODE", message=f"undecodable record: {reason}", data={"record": record})


class TransportError(ApiError):
    def __init__(self, message: str = "connection dropped mid-stream") -> None:
        super().__init__(code="TRANSPORT", message=message)


class BadRequestError(ApiError):
    def __init__(self, message: str) -> None:
        super().__init__(code="INVALID_ARGUMENT", message=message)
