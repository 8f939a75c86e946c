"""RequestContext -- 请求级上下文

由 LoggingMiddleware 为每个请求创建并挂到 request.state，
路由通过依赖注入取得后显式传入 service。kvs 中累积的业务字段
在请求结束时随 request_completed 一并输出。
"""

from typing import Any

import structlog
from ulid import ULID


class RequestContext:
    """单个 HTTP 请求的上下文"""

    def __init__(self, method: str, path: str, request_id: str | None = None) -> None:
        self.request_id = request_id or str(ULID())
        self.method = method
        self.path = path
        self.kvs: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        """记录单个业务字段"""
        self.kvs[key] = value

    def set_kvs(self, values: dict[str, Any]) -> None:
        """批量记录业务字段"""
        self.kvs.update(values)

    @property
    def log(self) -> structlog.stdlib.BoundLogger:
        """绑定了 request_id / method / path 的 logger"""
        return structlog.get_logger().bind(
            request_id=self.request_id,
            method=self.method,
            path=self.path,
        )
