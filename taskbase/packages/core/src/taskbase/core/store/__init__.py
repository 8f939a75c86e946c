"""Taskbase Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from ..config import StoreSettings, load_store_settings
from .conditional import ConditionalStore, SetMutation
from .notification_store import SqliteGroupNotificationStore, SqliteNotificationStore
from .resolver import ApprovalResolver, evaluate
from .sqlite_init import init_db
from .task_store import SqliteTaskStore


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        settings: StoreSettings | None = None,
    ) -> None:
        self.conn = conn
        self.settings = settings or StoreSettings()
        self.store = ConditionalStore(conn, timeout_s=self.settings.scan_timeout_s)
        self.resolver = ApprovalResolver(self.store, sticky=self.settings.sticky_status)
        self.task_store = SqliteTaskStore(self.store, self.resolver)
        self.notification_store = SqliteNotificationStore(
            self.store,
            scan_batch_size=self.settings.scan_batch_size,
        )
        self.group_notification_store = SqliteGroupNotificationStore(self.store)


async def connect_db(db_path: str) -> aiosqlite.Connection:
    """打开自动提交模式的连接，每条语句即一个独立事务"""
    conn = await aiosqlite.connect(db_path, isolation_level=None)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)
    return conn


async def create_store_group(
    db_path: str,
    settings: StoreSettings | None = None,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        settings: Store 行为配置，默认从环境变量加载

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await connect_db(db_path)
    return StoreGroup(conn=conn, settings=settings or load_store_settings())


__all__ = [
    "StoreGroup",
    "create_store_group",
    "connect_db",
    "ConditionalStore",
    "SetMutation",
    "ApprovalResolver",
    "evaluate",
    "SqliteTaskStore",
    "SqliteNotificationStore",
    "SqliteGroupNotificationStore",
    "init_db",
]
