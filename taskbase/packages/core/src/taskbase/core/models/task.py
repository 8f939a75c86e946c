"""Task Domain Model

任务是聚合根：身份、投票集合、阈值、派生状态以及版本令牌 updated_at。
同一投票者任何时刻至多出现在 resolved / rejected 之一中。
"""

from collections.abc import Iterable, Set

from pydantic import BaseModel, Field

from ..exceptions import InvalidArgumentError
from .enums import TaskField, TaskStatus

# 字段选择时总是附带的列
_ALWAYS_SELECTED: tuple[TaskField, ...] = (
    TaskField.GID,
    TaskField.STATUS,
    TaskField.KIND,
)
_PRIMARY_KEY: tuple[TaskField, ...] = (TaskField.UID, TaskField.ID)


def has_decision_authority(approvers: Set[str], voter: str) -> bool:
    """approvers 为空时所有人都有决定权"""
    return not approvers or voter in approvers


class Task(BaseModel):
    """Task 数据模型

    (uid, id) 为主键：uid 为分区键（任务所有者），id 为 ULID。
    updated_at 同时是标量更新的乐观并发版本令牌。
    """

    uid: str = Field(description="任务所有者 ID（分区键）")
    id: str = Field(description="任务 ID，ULID 格式")
    gid: str = Field(default="", description="所属群组 ID")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="聚合状态")
    kind: str = Field(default="", description="任务类型标签")
    created_at: int = Field(default=0, description="创建时间（毫秒）")
    updated_at: int = Field(default=0, description="更新时间（毫秒），版本令牌")
    duedate: int = Field(default=0, description="截止时间（毫秒）")
    threshold: int = Field(default=0, ge=0, description="通过/拒绝所需票数")
    approvers: set[str] = Field(default_factory=set, description="有决定权的审批人")
    assignees: set[str] = Field(default_factory=set, description="可投票的执行人")
    resolved: set[str] = Field(default_factory=set, description="投通过票的人")
    rejected: set[str] = Field(default_factory=set, description="投拒绝票的人")
    message: str = Field(default="", description="附言")
    payload: bytes = Field(default=b"", description="不透明负载")

    selected: list[TaskField] = Field(
        default_factory=list,
        exclude=True,
        description="本次读取实际选择的列",
    )

    @staticmethod
    def select_fields(
        fields: Iterable[str] | None,
        with_pk: bool = False,
    ) -> list[TaskField]:
        """校验并补全字段选择

        Args:
            fields: 调用方请求的列名，空表示全部
            with_pk: 是否需要附带主键列

        Returns:
            最终查询的列

        Raises:
            InvalidArgumentError: 存在未知列名
        """
        requested = [f for f in (fields or []) if f]
        if not requested:
            return list(TaskField)

        selected: list[TaskField] = []
        for name in requested:
            try:
                field = TaskField(name)
            except ValueError:
                raise InvalidArgumentError(f"Invalid field: {name}") from None
            if field not in selected:
                selected.append(field)

        extra = _ALWAYS_SELECTED + (_PRIMARY_KEY if with_pk else ())
        for field in extra:
            if field not in selected:
                selected.append(field)
        return selected

    def can_vote(self, voter: str) -> bool:
        """成员检查：approvers ∪ assignees 非空时，投票者必须属于其中之一"""
        if not self.approvers and not self.assignees:
            return True
        return voter in self.approvers or voter in self.assignees
