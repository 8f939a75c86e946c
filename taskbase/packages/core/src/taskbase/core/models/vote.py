"""投票结果模型"""

from pydantic import BaseModel, Field

from .enums import TaskStatus


class VoteResult(BaseModel):
    """一次投票后的聚合状态"""

    status: TaskStatus = Field(description="投票并评估后的任务状态")
    transitioned: bool = Field(default=False, description="本次投票是否触发了状态流转")
    resolved_count: int = Field(default=0, description="评估时的通过票数")
    rejected_count: int = Field(default=0, description="评估时的拒绝票数")
