"""apps/gateway 测试配置 -- httpx AsyncClient + 手动初始化的 StoreGroup"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskbase.core.store import create_store_group

_ENV_KEYS = ["TASKBASE_DB_PATH", "LOGFIRE_SEND_TO_LOGFIRE"]


@pytest_asyncio.fixture
async def app(tmp_path: Path):
    """创建测试用 FastAPI app 实例（绕过 lifespan 手动初始化 Store）"""
    db_path = tmp_path / "sqlite" / "test.db"
    os.environ["TASKBASE_DB_PATH"] = str(db_path)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from taskbase.gateway.main import create_app

    application = create_app()
    store_group = await create_store_group(str(db_path))
    application.state.store_group = store_group

    yield application

    await store_group.conn.close()
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
