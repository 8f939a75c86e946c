"""Taskbase 异常体系

所有核心层错误均为 TaskbaseError 子类，携带 retryable 标记，
由 gateway 统一映射为 HTTP 状态码。核心层从不在内部重试。
"""


class TaskbaseError(Exception):
    """Taskbase 基础异常"""

    status_code: int = 500
    code: str = "INTERNAL"

    def __init__(self, message: str, retryable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            retryable: 调用方重新读取最新状态后是否可以重试
        """
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class NotFoundError(TaskbaseError):
    """请求的记录不存在"""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class ConflictError(TaskbaseError):
    """条件写入的前置条件不满足（版本冲突、IF EXISTS / IF NOT EXISTS 失败）

    调用方需要重新读取当前状态后重试。
    """

    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class PermissionDeniedError(TaskbaseError):
    """投票者不在 approvers / assignees 中"""

    status_code = 403
    code = "PERMISSION_DENIED"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class InvalidArgumentError(TaskbaseError):
    """字段名非法或取值越界"""

    status_code = 400
    code = "INVALID_ARGUMENT"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class StoreTimeoutError(TaskbaseError):
    """读取或扫描超过单次调用超时"""

    status_code = 504
    code = "STORE_TIMEOUT"

    def __init__(self, operation: str, timeout_s: float) -> None:
        """
        Args:
            operation: 超时的操作描述
            timeout_s: 超时阈值（秒）
        """
        super().__init__(
            f"{operation} timed out after {timeout_s}s",
            retryable=True,
        )
        self.operation = operation
        self.timeout_s = timeout_s
