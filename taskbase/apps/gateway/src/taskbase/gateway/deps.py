"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 实例与请求上下文

Store 实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from taskbase.core.store import StoreGroup

from .context import RequestContext


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_request_context(request: Request) -> RequestContext:
    """获取 LoggingMiddleware 创建的 RequestContext"""
    ctx = getattr(request.state, "ctx", None)
    if ctx is None:
        # 未经过中间件（直接调用路由）时补一个
        ctx = RequestContext(method=request.method, path=request.url.path)
        request.state.ctx = ctx
    return ctx
