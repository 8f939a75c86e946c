"""structlog 配置模块

TASKBASE_LOG_FORMAT 选择渲染器（dev 可读输出 / json 结构化输出），
TASKBASE_LOG_LEVEL 控制根日志级别。标准库 logging 与 structlog 共用一个 formatter。
Logfire APM 由 LOGFIRE_SEND_TO_LOGFIRE 控制，默认关闭。
"""

import logging
import os

import structlog
from fastapi import FastAPI

# 请求日志由 LoggingMiddleware 统一输出，这些 logger 的逐条日志只在 DEBUG 下保留
_NOISY_LOGGERS = ("aiosqlite", "uvicorn.access")


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """初始化 structlog 与标准库 logging

    请求字段（request_id / method / path 以及路由记录的业务字段）
    由 RequestContext 显式绑定，这里不挂 contextvars 处理器。
    """
    level = _level(os.environ.get("TASKBASE_LOG_LEVEL", "INFO"))
    renderer = _renderer(os.environ.get("TASKBASE_LOG_FORMAT", "dev"))

    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    noisy_level = logging.NOTSET if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def setup_logfire(app: FastAPI) -> None:
    """按需启用 Logfire，并挂到给定的 FastAPI 应用上

    LOGFIRE_SEND_TO_LOGFIRE=true 时启用（需要 LOGFIRE_TOKEN），
    其余取值或初始化失败时仅保留本地日志。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name="taskbase")
        logfire.instrument_fastapi(app)
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            message="Logfire 初始化失败，降级为纯本地日志",
        )
