"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from taskbase.core.config import StoreSettings
from taskbase.core.store import StoreGroup, connect_db


@pytest_asyncio.fixture
async def core_db_path(tmp_path: Path) -> Path:
    """核心层临时数据库路径"""
    return tmp_path / "core_test.db"


@pytest_asyncio.fixture
async def stores(core_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """默认配置（sticky）的 Store 实例组"""
    conn = await connect_db(str(core_db_path))
    yield StoreGroup(conn, StoreSettings())
    await conn.close()


@pytest_asyncio.fixture
async def legacy_stores(core_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """终态可翻转（sticky_status=False）的 Store 实例组"""
    conn = await connect_db(str(core_db_path))
    yield StoreGroup(conn, StoreSettings(sticky_status=False))
    await conn.close()
