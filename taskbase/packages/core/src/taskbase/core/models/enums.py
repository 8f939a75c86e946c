"""枚举定义

TaskStatus 同时用于任务聚合状态和通知的个人确认状态，
TaskField 是任务投影（字段选择）可用的列名集合。
"""

from enum import IntEnum, StrEnum


class TaskStatus(IntEnum):
    """任务 / 通知状态"""

    REJECTED = -1
    PENDING = 0
    APPROVED = 1

    def opposite(self) -> "TaskStatus":
        """投票方向的反方向（PENDING 没有反方向）"""
        if self is TaskStatus.PENDING:
            raise ValueError("PENDING has no opposite vote")
        return TaskStatus.REJECTED if self is TaskStatus.APPROVED else TaskStatus.APPROVED


# 投票的终态集合
TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.APPROVED,
    TaskStatus.REJECTED,
}


class TaskField(StrEnum):
    """tasks 表列名，用于字段选择"""

    UID = "uid"
    ID = "id"
    GID = "gid"
    STATUS = "status"
    KIND = "kind"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    DUEDATE = "duedate"
    THRESHOLD = "threshold"
    APPROVERS = "approvers"
    ASSIGNEES = "assignees"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    MESSAGE = "message"
    PAYLOAD = "payload"


# 集合类型的列（以 JSON 数组存储，支持可交换的增删）
SET_FIELDS: frozenset[TaskField] = frozenset(
    {
        TaskField.APPROVERS,
        TaskField.ASSIGNEES,
        TaskField.RESOLVED,
        TaskField.REJECTED,
    }
)

# 允许通过乐观并发更新的标量列
MUTABLE_FIELDS: frozenset[TaskField] = frozenset(
    {
        TaskField.DUEDATE,
        TaskField.MESSAGE,
    }
)

# 投票列
VOTE_FIELD: dict[TaskStatus, TaskField] = {
    TaskStatus.APPROVED: TaskField.RESOLVED,
    TaskStatus.REJECTED: TaskField.REJECTED,
}
