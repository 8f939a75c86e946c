"""CLI 入口模块 -- python -m taskbase.core <command>

支持的命令：
  init-db                              初始化数据库表结构
  purge-notifications <uid> [status]   删除某接收人的通知，可按状态筛选
"""

import asyncio
import sys

from .config import get_db_path
from .models.enums import TaskStatus


def _usage() -> None:
    print("用法: python -m taskbase.core <command>")
    print("命令:")
    print("  init-db                              初始化数据库表结构")
    print("  purge-notifications <uid> [status]   删除接收人的通知（status: -1/0/1）")


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        _usage()
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "purge-notifications":
        if len(sys.argv) < 3:
            _usage()
            sys.exit(1)
        status = None
        if len(sys.argv) > 3:
            try:
                status = TaskStatus(int(sys.argv[3]))
            except ValueError:
                print(f"非法状态: {sys.argv[3]}")
                sys.exit(1)
        asyncio.run(purge_notifications(sys.argv[2], status))
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, purge-notifications")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库文件与表结构"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        print("初始化完成")
    finally:
        await store_group.conn.close()


async def purge_notifications(uid: str, status: TaskStatus | None) -> None:
    """批量删除接收人的通知"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        count = await store_group.notification_store.batch_delete_by_uid(uid, status)
        print(f"已删除 {count} 条通知")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
