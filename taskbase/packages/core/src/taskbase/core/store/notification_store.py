"""NotificationStore / GroupNotificationStore SQLite 实现

两类记录共享同一套模式：条件插入 + 分区内倒序游标扫描。
Notification 另有 IF EXISTS 语义的确认写入与批量删除。
"""

import structlog

from ..exceptions import ConflictError, NotFoundError
from ..models.enums import TaskStatus
from ..models.notification import GroupNotification, Notification
from .conditional import ConditionalStore, Row
from .sqlite_init import GROUP_NOTIFICATIONS_TABLE, NOTIFICATIONS_TABLE

log = structlog.get_logger()

_NOTIFICATION_FIELDS = ["uid", "tid", "sender", "status", "message"]
_NOTIFICATION_KEY_FIELDS = ["uid", "tid", "sender"]
_GROUP_NOTIFICATION_FIELDS = ["gid", "tid", "sender", "role"]


class SqliteNotificationStore:
    """NotificationStore 的 SQLite 实现"""

    def __init__(self, store: ConditionalStore, scan_batch_size: int = 1000) -> None:
        self._store = store
        self._scan_batch_size = scan_batch_size

    async def create_notification(self, notification: Notification) -> Notification:
        """创建通知记录，已存在时抛出 ConflictError"""
        applied = await self._store.insert_if_absent(
            NOTIFICATIONS_TABLE,
            notification.model_dump(),
        )
        if not applied:
            raise ConflictError("Notification save failed, please try again")
        return notification

    async def get_notification(self, uid: str, tid: str, sender: str) -> Notification:
        """按主键读取通知

        Raises:
            NotFoundError: 通知不存在
        """
        row = await self._store.select_one(
            NOTIFICATIONS_TABLE,
            _NOTIFICATION_FIELDS,
            {"uid": uid, "tid": tid, "sender": sender},
        )
        if row is None:
            raise NotFoundError(f"Notification {uid}/{tid}/{sender} not found")
        return self._row_to_notification(row)

    async def update_notification(self, notification: Notification) -> None:
        """写入 status / message（IF EXISTS，不做版本检查）"""
        applied = await self._store.update_if_exists(
            NOTIFICATIONS_TABLE,
            {
                "uid": notification.uid,
                "tid": notification.tid,
                "sender": notification.sender,
            },
            values={"status": notification.status, "message": notification.message},
        )
        if not applied:
            raise ConflictError("Notification update failed, please try again")

    async def delete_notification(self, uid: str, tid: str, sender: str) -> None:
        """删除单条通知（不存在也不报错）"""
        await self._store.delete(
            NOTIFICATIONS_TABLE,
            {"uid": uid, "tid": tid, "sender": sender},
        )

    async def list_notifications(
        self,
        uid: str,
        page_size: int = 10,
        page_token: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Notification]:
        """按 tid 倒序分页列出接收人的通知"""
        rows = await self._store.scan(
            NOTIFICATIONS_TABLE,
            _NOTIFICATION_FIELDS,
            {"uid": uid},
            cursor_column="tid",
            cursor=page_token,
            filters={"status": status},
            limit=page_size,
            bypass_cache=True,
        )
        return [self._row_to_notification(row) for row in rows]

    async def batch_delete_by_uid(self, uid: str, status: TaskStatus | None = None) -> int:
        """删除接收人的全部通知，可按状态筛选"""
        where: dict = {"uid": uid}
        if status is not None:
            where["status"] = status
        count = await self._store.delete(NOTIFICATIONS_TABLE, where)
        log.info(
            "notifications_batch_deleted",
            uid=uid,
            status=None if status is None else int(status),
            count=count,
        )
        return count

    async def batch_delete_by_tid(self, tid: str) -> int:
        """删除某任务的全部通知

        反复扫描至多 scan_batch_size 条主键并逐条删除，
        直到扫描为空或某一批没有任何进展。
        """
        total = 0
        while True:
            rows = await self._store.scan(
                NOTIFICATIONS_TABLE,
                _NOTIFICATION_KEY_FIELDS,
                {"tid": tid},
                limit=self._scan_batch_size,
                bypass_cache=True,
            )
            if not rows:
                break

            deleted = 0
            for row in rows:
                deleted += await self._store.delete(NOTIFICATIONS_TABLE, row)
            total += deleted
            if deleted == 0:
                log.warning("notifications_purge_stalled", tid=tid, pending=len(rows))
                break

        return total

    @staticmethod
    def _row_to_notification(row: Row) -> Notification:
        """将数据库行转换为 Notification 模型"""
        return Notification(**row)


class SqliteGroupNotificationStore:
    """GroupNotificationStore 的 SQLite 实现 -- 仅 CRUD，无投票语义"""

    def __init__(self, store: ConditionalStore) -> None:
        self._store = store

    async def create_group_notification(
        self, notification: GroupNotification
    ) -> GroupNotification:
        """创建群组通知，已存在时抛出 ConflictError"""
        applied = await self._store.insert_if_absent(
            GROUP_NOTIFICATIONS_TABLE,
            notification.model_dump(),
        )
        if not applied:
            raise ConflictError("GroupNotification save failed, please try again")
        return notification

    async def get_group_notification(
        self, gid: str, tid: str, sender: str
    ) -> GroupNotification:
        """按主键读取群组通知"""
        row = await self._store.select_one(
            GROUP_NOTIFICATIONS_TABLE,
            _GROUP_NOTIFICATION_FIELDS,
            {"gid": gid, "tid": tid, "sender": sender},
        )
        if row is None:
            raise NotFoundError(f"GroupNotification {gid}/{tid}/{sender} not found")
        return GroupNotification(**row)

    async def delete_group_notification(self, gid: str, tid: str, sender: str) -> None:
        await self._store.delete(
            GROUP_NOTIFICATIONS_TABLE,
            {"gid": gid, "tid": tid, "sender": sender},
        )

    async def list_group_notifications(
        self,
        gid: str,
        page_size: int = 10,
        page_token: str | None = None,
        role: int | None = None,
    ) -> list[GroupNotification]:
        """按 tid 倒序分页列出群组通知，可按 role 筛选"""
        rows = await self._store.scan(
            GROUP_NOTIFICATIONS_TABLE,
            _GROUP_NOTIFICATION_FIELDS,
            {"gid": gid},
            cursor_column="tid",
            cursor=page_token,
            filters={"role": role},
            limit=page_size,
            bypass_cache=True,
        )
        return [GroupNotification(**row) for row in rows]
