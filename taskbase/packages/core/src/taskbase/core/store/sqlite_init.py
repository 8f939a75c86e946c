"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
集合列以 JSON 数组文本存储，由 JSON1 函数在单条语句内完成增删。
"""

import aiosqlite

TASKS_TABLE = "tasks"
NOTIFICATIONS_TABLE = "notifications"
GROUP_NOTIFICATIONS_TABLE = "group_notifications"

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    uid         TEXT NOT NULL,
    id          TEXT NOT NULL,
    gid         TEXT NOT NULL DEFAULT '',
    status      INTEGER NOT NULL DEFAULT 0,
    kind        TEXT NOT NULL DEFAULT '',
    created_at  INTEGER NOT NULL DEFAULT 0,
    updated_at  INTEGER NOT NULL DEFAULT 0,
    duedate     INTEGER NOT NULL DEFAULT 0,
    threshold   INTEGER NOT NULL DEFAULT 0,
    approvers   TEXT NOT NULL DEFAULT '[]',
    assignees   TEXT NOT NULL DEFAULT '[]',
    resolved    TEXT NOT NULL DEFAULT '[]',
    rejected    TEXT NOT NULL DEFAULT '[]',
    message     TEXT NOT NULL DEFAULT '',
    payload     BLOB NOT NULL DEFAULT x'',

    PRIMARY KEY (uid, id)
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_uid_status ON tasks(uid, status, id);",
]

# notifications 表 DDL
_NOTIFICATIONS_DDL = """
CREATE TABLE IF NOT EXISTS notifications (
    uid      TEXT NOT NULL,
    tid      TEXT NOT NULL,
    sender   TEXT NOT NULL,
    status   INTEGER NOT NULL DEFAULT 0,
    message  TEXT NOT NULL DEFAULT '',

    PRIMARY KEY (uid, tid, sender)
);
"""

_NOTIFICATIONS_INDEXES = [
    # 任务删除时按 tid 清理
    "CREATE INDEX IF NOT EXISTS idx_notifications_tid ON notifications(tid);",
    # 按状态筛选的接收人列表
    "CREATE INDEX IF NOT EXISTS idx_notifications_uid_status ON notifications(uid, status, tid);",
]

# group_notifications 表 DDL
_GROUP_NOTIFICATIONS_DDL = """
CREATE TABLE IF NOT EXISTS group_notifications (
    gid     TEXT NOT NULL,
    tid     TEXT NOT NULL,
    sender  TEXT NOT NULL,
    role    INTEGER NOT NULL DEFAULT 0,

    PRIMARY KEY (gid, tid, sender)
);
"""

_GROUP_NOTIFICATIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_group_notifications_role ON group_notifications(gid, role, tid);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_NOTIFICATIONS_DDL)
    await conn.execute(_GROUP_NOTIFICATIONS_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _NOTIFICATIONS_INDEXES + _GROUP_NOTIFICATIONS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
