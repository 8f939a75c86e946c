"""LoggingMiddleware -- 请求级日志

为每个 HTTP 请求创建 RequestContext（含 request_id），
请求结束时输出 request_completed 并在响应头返回 X-Request-ID。
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..context import RequestContext


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件 -- 为每个请求生成 request_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        ctx = RequestContext(method=request.method, path=request.url.path)
        request.state.ctx = ctx

        started = time.monotonic()
        response = await call_next(request)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        await ctx.log.ainfo(
            "request_completed",
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
            **ctx.kvs,
        )

        # 在响应头中返回 request_id
        response.headers["X-Request-ID"] = ctx.request_id
        return response
