"""TaskService -- 任务创建/更新/删除业务逻辑

任务是聚合状态的唯一来源，Notification / GroupNotification 是其投影：
- 创建任务后逐个写入接收人的 Notification（以及可选的 GroupNotification）；
- 删除任务后清理对应的 GroupNotification 与全部 Notification。
投影写入均为 best-effort：失败只记录 warning，不影响任务本身的结果。
"""

from collections.abc import Awaitable, Iterable
from typing import Any

import aiosqlite
from taskbase.core.exceptions import InvalidArgumentError, TaskbaseError
from taskbase.core.models import (
    GroupNotification,
    Notification,
    Task,
    TaskField,
    TaskStatus,
)
from taskbase.core.store import StoreGroup
from ulid import ULID

from ..context import RequestContext


async def best_effort(
    ctx: RequestContext,
    event: str,
    op: Awaitable[Any],
    **fields: Any,
) -> bool:
    """执行投影写入，失败时记录 warning 并返回 False"""
    try:
        await op
    except (TaskbaseError, aiosqlite.Error) as e:
        ctx.log.warning(event, error=str(e), error_type=type(e).__name__, **fields)
        return False
    return True


def next_page_token(ids: list[str], page_size: int) -> str | None:
    """只有拿到整页时才返回下一页游标（最后一行的 ULID）"""
    if ids and len(ids) >= page_size:
        return ids[-1]
    return None


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def create_task(
        self,
        ctx: RequestContext,
        *,
        uid: str,
        gid: str = "",
        kind: str = "",
        threshold: int = 0,
        approvers: Iterable[str] = (),
        assignees: Iterable[str] = (),
        duedate: int = 0,
        message: str = "",
        payload: bytes = b"",
        group_role: int | None = None,
    ) -> Task:
        """创建任务并扇出通知

        Returns:
            已落盘的任务（全部列）
        """
        task = Task(
            uid=uid,
            id=str(ULID()),
            gid=gid,
            kind=kind,
            threshold=threshold,
            approvers=set(approvers),
            assignees=set(assignees),
            duedate=duedate,
            message=message,
            payload=payload,
        )
        task = await self._stores.task_store.create_task(task)
        ctx.set("id", task.id)

        if group_role is not None and task.gid:
            await best_effort(
                ctx,
                "group_notification_fanout_failed",
                self._stores.group_notification_store.create_group_notification(
                    GroupNotification(
                        gid=task.gid, tid=task.id, sender=task.uid, role=group_role
                    )
                ),
                gid=task.gid,
                tid=task.id,
            )

        recipients = sorted(task.approvers | task.assignees)
        delivered = 0
        for recipient in recipients:
            if await self._notify(ctx, recipient, task.id, task.uid):
                delivered += 1
        ctx.set_kvs({"recipients": len(recipients), "delivered": delivered})
        return task

    async def get_task(
        self,
        uid: str,
        task_id: str,
        fields: Iterable[str] | None = None,
    ) -> Task:
        return await self._stores.task_store.get_task(uid, task_id, fields)

    async def list_tasks(
        self,
        uid: str,
        fields: Iterable[str] | None = None,
        page_size: int = 10,
        page_token: str | None = None,
        status: TaskStatus | None = None,
    ) -> tuple[list[Task], str | None]:
        """分页列出任务，返回 (任务列表, 下一页游标)"""
        tasks = await self._stores.task_store.list_tasks(
            uid, fields, page_size, page_token, status
        )
        return tasks, next_page_token([t.id for t in tasks], page_size)

    async def update_task(
        self,
        ctx: RequestContext,
        uid: str,
        task_id: str,
        updated_at: int,
        *,
        duedate: int | None = None,
        message: str | None = None,
    ) -> int:
        """更新 duedate / message，返回新的版本令牌"""
        changes: dict[str, Any] = {}
        if duedate is not None:
            changes[TaskField.DUEDATE.value] = duedate
        if message is not None:
            changes[TaskField.MESSAGE.value] = message
        if not changes:
            raise InvalidArgumentError("No fields to update")

        ctx.set("fields", sorted(changes))
        return await self._stores.task_store.update_scalar(
            uid, task_id, changes, updated_at
        )

    async def update_assignees(
        self,
        ctx: RequestContext,
        uid: str,
        task_id: str,
        updated_at: int,
        *,
        remove: Iterable[str] = (),
        add: Iterable[str] = (),
    ) -> int:
        """增删 assignees，并同步被增删成员的 Notification

        移除的成员如果仍是 approver，保留其 Notification。
        """
        remove_ids = set(remove)
        add_ids = set(add)
        if not remove_ids and not add_ids:
            raise InvalidArgumentError("No assignees to update")

        member_fields = [TaskField.APPROVERS, TaskField.ASSIGNEES]
        before = await self._stores.task_store.get_task(uid, task_id, member_fields)
        new_updated_at = await self._stores.task_store.update_assignees(
            uid, task_id, remove_ids, add_ids, updated_at
        )
        ctx.set_kvs({"removed": len(remove_ids), "added": len(add_ids)})

        members = await self._stores.task_store.get_task(uid, task_id, member_fields)
        for recipient in sorted(remove_ids - members.approvers - members.assignees):
            await best_effort(
                ctx,
                "notification_purge_failed",
                self._stores.notification_store.delete_notification(
                    recipient, task_id, uid
                ),
                recipient=recipient,
                tid=task_id,
            )
        # 更新前已是成员的 id 已经有通知
        already_notified = before.approvers | before.assignees
        for recipient in sorted(add_ids - already_notified):
            await self._notify(ctx, recipient, task_id, uid)

        return new_updated_at

    async def delete_task(self, ctx: RequestContext, uid: str, task_id: str) -> bool:
        """删除任务并清理投影

        Returns:
            False 表示任务已不存在
        """
        doc = await self._stores.task_store.delete_task(uid, task_id)
        if doc is None:
            return False

        if doc.gid:
            await best_effort(
                ctx,
                "group_notification_purge_failed",
                self._stores.group_notification_store.delete_group_notification(
                    doc.gid, task_id, uid
                ),
                gid=doc.gid,
                tid=task_id,
            )
        await best_effort(
            ctx,
            "notification_purge_failed",
            self._stores.notification_store.batch_delete_by_tid(task_id),
            tid=task_id,
        )
        return True

    async def batch_delete_tasks(
        self,
        ctx: RequestContext,
        uid: str,
        status: TaskStatus | None = None,
    ) -> int:
        """删除所有者的全部任务（可按状态筛选），每个任务都执行完整清理

        Returns:
            实际删除的任务数
        """
        batch_size = self._stores.settings.scan_batch_size
        deleted = 0
        page_token: str | None = None
        while True:
            ids = await self._stores.task_store.list_task_ids(
                uid, status, batch_size, page_token
            )
            for task_id in ids:
                if await self.delete_task(ctx, uid, task_id):
                    deleted += 1
            page_token = next_page_token(ids, batch_size)
            if page_token is None:
                break

        ctx.set("deleted", deleted)
        return deleted

    async def _notify(
        self, ctx: RequestContext, recipient: str, tid: str, sender: str
    ) -> bool:
        return await best_effort(
            ctx,
            "notification_fanout_failed",
            self._stores.notification_store.create_notification(
                Notification(uid=recipient, tid=tid, sender=sender)
            ),
            recipient=recipient,
            tid=tid,
        )
