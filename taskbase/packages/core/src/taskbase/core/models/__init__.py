"""Taskbase Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    MUTABLE_FIELDS,
    SET_FIELDS,
    TERMINAL_STATES,
    VOTE_FIELD,
    TaskField,
    TaskStatus,
)
from .notification import GroupNotification, Notification
from .task import Task, has_decision_authority
from .vote import VoteResult

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskField",
    "TERMINAL_STATES",
    "SET_FIELDS",
    "MUTABLE_FIELDS",
    "VOTE_FIELD",
    # Task
    "Task",
    "has_decision_authority",
    "VoteResult",
    # Notification
    "Notification",
    "GroupNotification",
]
