"""健康检查路由

GET /: 服务名与版本。
GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、WAL 模式、磁盘空间。
"""

import shutil

import aiosqlite
import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse
from taskbase.core.store.sqlite_init import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()

SERVICE_NAME = "taskbase"
SERVICE_VERSION = "0.1.0"


@router.get("/")
async def version():
    return {"result": {"name": SERVICE_NAME, "version": SERVICE_VERSION}}


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. wal_mode: 数据库是否处于 WAL 模式
    3. disk_space_mb: 磁盘剩余空间
    """
    checks: dict = {}
    all_ok = True

    # 1. SQLite 连通性
    store_group = getattr(request.app.state, "store_group", None)
    try:
        if store_group is None:
            raise RuntimeError("store group not initialized")
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        await cursor.close()
        checks["sqlite"] = "ok"
    except (aiosqlite.Error, ValueError, RuntimeError) as e:
        log.warning("ready_sqlite_unavailable", error=str(e))
        checks["sqlite"] = "unavailable"
        all_ok = False

    # 2. WAL 模式
    if checks["sqlite"] == "ok":
        wal = await verify_wal_mode(store_group.conn)
        checks["wal_mode"] = "ok" if wal else "disabled"
        all_ok = all_ok and wal
    else:
        checks["wal_mode"] = "skipped"

    # 3. 磁盘空间
    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
