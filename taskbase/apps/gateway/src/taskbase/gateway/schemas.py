"""API 响应模型

成功响应统一为 {"result": ..., "next_page_token": ...}；
任务投影只输出本次实际读取的列（Task.selected），未选择的列不出现在响应中。
"""

import base64
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field
from taskbase.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from taskbase.core.models import GroupNotification, Task, TaskField

T = TypeVar("T")

# 投影中始终输出的列
_IDENTITY_FIELDS = {
    TaskField.UID,
    TaskField.ID,
    TaskField.GID,
    TaskField.STATUS,
    TaskField.KIND,
}


class SuccessResponse(BaseModel, Generic[T]):
    """成功响应信封"""

    result: T
    next_page_token: str | None = None


def _optional_fields(task: Task) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for field in task.selected:
        if field in _IDENTITY_FIELDS:
            continue
        value = getattr(task, field.value)
        if isinstance(value, set):
            value = sorted(value)
        elif isinstance(value, bytes):
            value = base64.b64encode(value).decode("ascii")
        out[field.value] = value
    return out


class TaskOutput(BaseModel):
    """任务投影"""

    uid: str
    id: str
    gid: str
    status: int
    kind: str
    created_at: int | None = None
    updated_at: int | None = None
    duedate: int | None = None
    threshold: int | None = None
    approvers: list[str] | None = None
    assignees: list[str] | None = None
    resolved: list[str] | None = None
    rejected: list[str] | None = None
    message: str | None = None
    payload: str | None = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskOutput":
        return cls(
            uid=task.uid,
            id=task.id,
            gid=task.gid,
            status=int(task.status),
            kind=task.kind,
            **_optional_fields(task),
        )


class NotificationOutput(TaskOutput):
    """通知视图 -- 任务投影 + 接收人自己的确认状态

    uid 为任务所有者（即通知的 sender），id 为任务 ID（即通知的 tid）。
    """

    ack_status: int

    @classmethod
    def from_task_ack(cls, task: Task, ack_status: int) -> "NotificationOutput":
        return cls(
            uid=task.uid,
            id=task.id,
            gid=task.gid,
            status=int(task.status),
            kind=task.kind,
            ack_status=ack_status,
            **_optional_fields(task),
        )


class GroupNotificationOutput(BaseModel):
    """群组通知"""

    gid: str
    tid: str
    sender: str
    role: int

    @classmethod
    def from_model(cls, notification: GroupNotification) -> "GroupNotificationOutput":
        return cls(**notification.model_dump())


class UpdatedOutput(BaseModel):
    """乐观并发写入后的新版本令牌"""

    updated_at: int


# ---- 请求模型共用部分 ----

ULID_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"

UlidStr = Annotated[str, Field(pattern=ULID_PATTERN)]


class Pagination(BaseModel):
    """列表请求通用参数"""

    uid: UlidStr
    page_token: UlidStr | None = None
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    status: Literal[-1, 0, 1] | None = None
    fields: list[str] = Field(default_factory=list)
