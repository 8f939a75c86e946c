"""NotificationService -- 通知确认（投票入口）与通知查询

ack 流程：
1. 读取接收人的 Notification
2. 请求状态与已存状态相同则直接返回 False（幂等，无任何写入）
3. 以接收人为投票者，对 (sender, tid) 任务投票，由 ApprovalResolver 评估
4. 写回 Notification 自己的 status / message
投票先于通知写入：第 4 步失败时票已生效，重试 ack 会再次投同一票（幂等）。
"""

from collections.abc import Iterable

from taskbase.core.exceptions import InvalidArgumentError, NotFoundError
from taskbase.core.models import GroupNotification, Task, TaskStatus, VoteResult
from taskbase.core.store import StoreGroup

from ..context import RequestContext
from .task_service import next_page_token


class NotificationService:
    """通知业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def ack(
        self,
        ctx: RequestContext,
        uid: str,
        tid: str,
        sender: str,
        status: int,
        message: str = "",
    ) -> bool:
        """确认通知

        Args:
            uid: 接收人（投票者）
            tid: 任务 ID
            sender: 任务所有者
            status: 1 通过，-1 拒绝

        Returns:
            False 表示状态未变化，未做任何写入

        Raises:
            InvalidArgumentError: status 不是 -1 或 1
            NotFoundError: 通知或任务不存在
            PermissionDeniedError: 接收人不在 approvers / assignees 中
            ConflictError: 写入前置条件不满足，可重试
        """
        if status not in (TaskStatus.APPROVED, TaskStatus.REJECTED):
            raise InvalidArgumentError(
                f"invalid status, expected -1 or 1, got {status}"
            )
        vote = TaskStatus(status)

        notification = await self._stores.notification_store.get_notification(
            uid, tid, sender
        )
        if notification.status == vote:
            ctx.set("noop", True)
            return False

        task_store = self._stores.task_store
        if vote is TaskStatus.APPROVED:
            result: VoteResult = await task_store.cast_resolve_vote(sender, tid, uid)
        else:
            result = await task_store.cast_reject_vote(sender, tid, uid)
        ctx.set_kvs(
            {
                "task_status": result.status.name,
                "transitioned": result.transitioned,
            }
        )

        await self._stores.notification_store.update_notification(
            notification.model_copy(update={"status": vote, "message": message})
        )
        return True

    async def list_notifications(
        self,
        ctx: RequestContext,
        uid: str,
        fields: Iterable[str] | None = None,
        page_size: int = 10,
        page_token: str | None = None,
        status: TaskStatus | None = None,
    ) -> tuple[list[tuple[Task, TaskStatus]], str | None]:
        """列出接收人的通知，并附带对应任务的投影

        Returns:
            ([(任务, 个人确认状态)], 下一页游标)；任务已删除的通知被跳过
        """
        fields = list(fields or [])
        notifications = await self._stores.notification_store.list_notifications(
            uid, page_size, page_token, status
        )

        items: list[tuple[Task, TaskStatus]] = []
        for notification in notifications:
            try:
                task = await self._stores.task_store.get_task(
                    notification.sender, notification.tid, fields, with_pk=True
                )
            except NotFoundError:
                ctx.log.warning(
                    "notification_task_missing",
                    uid=uid,
                    tid=notification.tid,
                    sender=notification.sender,
                )
                continue
            items.append((task, notification.status))

        token = next_page_token([n.tid for n in notifications], page_size)
        return items, token

    async def delete_notification(
        self, ctx: RequestContext, uid: str, tid: str, sender: str
    ) -> None:
        await self._stores.notification_store.delete_notification(uid, tid, sender)

    async def batch_delete_notifications(
        self,
        ctx: RequestContext,
        uid: str,
        status: TaskStatus | None = None,
    ) -> int:
        count = await self._stores.notification_store.batch_delete_by_uid(uid, status)
        ctx.set("deleted", count)
        return count

    async def list_group_notifications(
        self,
        gid: str,
        page_size: int = 10,
        page_token: str | None = None,
        role: int | None = None,
    ) -> tuple[list[GroupNotification], str | None]:
        items = await self._stores.group_notification_store.list_group_notifications(
            gid, page_size, page_token, role
        )
        return items, next_page_token([n.tid for n in items], page_size)
