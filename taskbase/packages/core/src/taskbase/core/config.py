"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、扫描超时、批量大小、API 校验上限等可配置常量，
以及 Store 行为配置 StoreSettings。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKBASE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKBASE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskbase.db"),
    )


# 列表接口默认分页大小与上限
DEFAULT_PAGE_SIZE: int = 10
MAX_PAGE_SIZE: int = 1000

# 创建任务时的成员与阈值上限
MAX_APPROVERS: int = 4
MAX_ASSIGNEES: int = 256
MAX_THRESHOLD: int = 256

# GroupNotification.role 取值范围
MIN_GROUP_ROLE: int = -1
MAX_GROUP_ROLE: int = 2


class StoreSettings(BaseModel):
    """Store 行为配置 -- 从环境变量加载

    环境变量:
        TASKBASE_SCAN_TIMEOUT_S: 单次读取/扫描超时（秒，默认 3）
        TASKBASE_SCAN_BATCH_SIZE: 批量删除时单次扫描行数（默认 1000）
        TASKBASE_STICKY_STATUS: 终态是否不可翻转（默认 true）
    """

    scan_timeout_s: float = Field(
        default=3.0,
        gt=0,
        description="单次读取/扫描超时（秒）",
    )
    scan_batch_size: int = Field(
        default=1000,
        ge=1,
        description="批量删除时单次扫描的最大行数",
    )
    sticky_status: bool = Field(
        default=True,
        description="任务一旦 approved/rejected 后不再翻转",
    )


# 数值型环境变量：(变量名, 字段名, 解析函数)
_NUMERIC_ENV = (
    ("TASKBASE_SCAN_TIMEOUT_S", "scan_timeout_s", float),
    ("TASKBASE_SCAN_BATCH_SIZE", "scan_batch_size", int),
)


def load_store_settings() -> StoreSettings:
    """从环境变量加载 Store 配置

    数值无法解析或超出取值范围时记录 warning 并使用默认值，不阻塞启动。
    """
    kwargs: dict = {}

    for env_var, name, parse in _NUMERIC_ENV:
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            value = parse(val)
            # 单字段校验，范围约束与 StoreSettings 保持一致
            StoreSettings.model_validate({name: value})
        except ValueError:
            log.warning(
                "invalid_store_config",
                env_var=env_var,
                value=val,
                fallback=StoreSettings.model_fields[name].default,
            )
            continue
        kwargs[name] = value

    if val := os.environ.get("TASKBASE_STICKY_STATUS"):
        kwargs["sticky_status"] = val.strip().lower() not in ("0", "false", "no", "off")

    return StoreSettings(**kwargs)
