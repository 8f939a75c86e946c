"""Store Protocol 接口定义

定义 TaskStore、NotificationStore、GroupNotificationStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from ..models.enums import TaskStatus
from ..models.notification import GroupNotification, Notification
from ..models.task import Task
from ..models.vote import VoteResult


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> Task:
        """创建任务记录（IF NOT EXISTS）"""
        ...

    async def get_task(
        self,
        uid: str,
        task_id: str,
        fields: Iterable[str] | None = None,
        with_pk: bool = False,
    ) -> Task:
        """按字段选择读取任务"""
        ...

    async def update_scalar(
        self,
        uid: str,
        task_id: str,
        changes: Mapping[str, Any],
        updated_at: int,
    ) -> int:
        """以 updated_at 为版本令牌更新 duedate / message"""
        ...

    async def update_assignees(
        self,
        uid: str,
        task_id: str,
        remove: Iterable[str],
        add: Iterable[str],
        updated_at: int,
    ) -> int:
        """以 updated_at 为版本令牌增删 assignees"""
        ...

    async def cast_resolve_vote(self, uid: str, task_id: str, voter: str) -> VoteResult:
        """投通过票"""
        ...

    async def cast_reject_vote(self, uid: str, task_id: str, voter: str) -> VoteResult:
        """投拒绝票"""
        ...

    async def delete_task(self, uid: str, task_id: str) -> Task | None:
        """删除任务，已不存在时返回 None"""
        ...

    async def list_tasks(
        self,
        uid: str,
        fields: Iterable[str] | None = None,
        page_size: int = 10,
        page_token: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """分页列出任务"""
        ...


class NotificationStore(Protocol):
    """Notification 存储接口"""

    async def create_notification(self, notification: Notification) -> Notification:
        ...

    async def get_notification(self, uid: str, tid: str, sender: str) -> Notification:
        ...

    async def update_notification(self, notification: Notification) -> None:
        ...

    async def delete_notification(self, uid: str, tid: str, sender: str) -> None:
        ...

    async def list_notifications(
        self,
        uid: str,
        page_size: int = 10,
        page_token: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Notification]:
        ...

    async def batch_delete_by_uid(self, uid: str, status: TaskStatus | None = None) -> int:
        ...

    async def batch_delete_by_tid(self, tid: str) -> int:
        ...


class GroupNotificationStore(Protocol):
    """GroupNotification 存储接口"""

    async def create_group_notification(
        self, notification: GroupNotification
    ) -> GroupNotification:
        ...

    async def get_group_notification(
        self, gid: str, tid: str, sender: str
    ) -> GroupNotification:
        ...

    async def delete_group_notification(self, gid: str, tid: str, sender: str) -> None:
        ...

    async def list_group_notifications(
        self,
        gid: str,
        page_size: int = 10,
        page_token: str | None = None,
        role: int | None = None,
    ) -> list[GroupNotification]:
        ...
