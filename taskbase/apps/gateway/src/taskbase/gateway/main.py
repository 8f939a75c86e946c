"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 路由注册 + 统一错误映射。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse
from taskbase.core.config import get_db_path
from taskbase.core.exceptions import TaskbaseError
from taskbase.core.store import create_store_group

from .deps import get_request_context
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .routes import group_notifications, health, notifications, tasks

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB，关闭时清理连接"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    app.state.store_group = store_group
    log.info(
        "store_initialized",
        db_path=db_path,
        sticky_status=store_group.settings.sticky_status,
        scan_timeout_s=store_group.settings.scan_timeout_s,
    )

    yield

    # 关闭：清理数据库连接
    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()


async def taskbase_error_handler(request: Request, exc: TaskbaseError) -> JSONResponse:
    """核心层异常 -> {"error": {"code", "message"}}"""
    ctx = get_request_context(request)
    ctx.set_kvs({"error_code": exc.code, "retryable": exc.retryable})
    if exc.status_code >= 500:
        ctx.log.warning("request_failed", error_code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "retryable": exc.retryable,
            }
        },
    )


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Taskbase Gateway",
        version=health.SERVICE_VERSION,
        description="多方审批任务与通知 API",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(TaskbaseError, taskbase_error_handler)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(notifications.router, tags=["notifications"])
    app.include_router(group_notifications.router, tags=["group_notifications"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
