"""Notification / GroupNotification Domain Model

Notification 是每个接收人的私有确认记录，GroupNotification 是群组可见标记。
二者都是任务的可丢弃投影，任务本身才是聚合状态的来源。
"""

from pydantic import BaseModel, Field

from .enums import TaskStatus


class Notification(BaseModel):
    """Notification 数据模型 -- 主键 (uid, tid, sender)"""

    uid: str = Field(description="接收人 ID（分区键）")
    tid: str = Field(description="任务 ID")
    sender: str = Field(description="任务所有者 ID")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="个人确认状态")
    message: str = Field(default="", description="确认时的附言")


class GroupNotification(BaseModel):
    """GroupNotification 数据模型 -- 主键 (gid, tid, sender)"""

    gid: str = Field(description="群组 ID（分区键）")
    tid: str = Field(description="任务 ID")
    sender: str = Field(description="任务所有者 ID")
    role: int = Field(default=0, description="群组角色标记")
