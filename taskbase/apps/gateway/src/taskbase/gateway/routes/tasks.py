"""任务路由

POST   /v1/task               创建任务并扇出通知
GET    /v1/task               按字段选择读取任务
PATCH  /v1/task               乐观并发更新 duedate / message
PATCH  /v1/task/assignees     乐观并发增删 assignees
PATCH  /v1/task/ack           接收人确认通知（投票）
POST   /v1/task/list          分页列出所有者的任务
POST   /v1/task/delete        删除任务并清理通知
POST   /v1/task/batch_delete  按状态批量删除所有者的任务
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import Base64Bytes, BaseModel, Field
from taskbase.core.config import (
    MAX_ASSIGNEES,
    MAX_APPROVERS,
    MAX_GROUP_ROLE,
    MAX_THRESHOLD,
    MIN_GROUP_ROLE,
)
from taskbase.core.models import TaskStatus

from ..context import RequestContext
from ..deps import get_request_context, get_store_group
from ..schemas import (
    ULID_PATTERN,
    Pagination,
    SuccessResponse,
    TaskOutput,
    UlidStr,
    UpdatedOutput,
)
from ..services.notification_service import NotificationService
from ..services.task_service import TaskService

router = APIRouter(prefix="/v1/task")


class CreateTaskInput(BaseModel):
    uid: UlidStr
    gid: UlidStr | None = None
    kind: str = ""
    threshold: int = Field(default=0, ge=0, le=MAX_THRESHOLD)
    approvers: list[UlidStr] = Field(default_factory=list, max_length=MAX_APPROVERS)
    assignees: list[UlidStr] = Field(default_factory=list, max_length=MAX_ASSIGNEES)
    duedate: int = Field(default=0, ge=0)
    message: str = ""
    payload: Base64Bytes = b""
    group_role: int | None = Field(default=None, ge=MIN_GROUP_ROLE, le=MAX_GROUP_ROLE)


class UpdateTaskInput(BaseModel):
    uid: UlidStr
    id: UlidStr
    updated_at: int = Field(ge=0, description="当前版本令牌")
    duedate: int | None = Field(default=None, ge=0)
    message: str | None = None


class UpdateAssigneesInput(BaseModel):
    uid: UlidStr
    id: UlidStr
    updated_at: int = Field(ge=0, description="当前版本令牌")
    remove: list[UlidStr] = Field(default_factory=list, max_length=MAX_ASSIGNEES)
    add: list[UlidStr] = Field(default_factory=list, max_length=MAX_ASSIGNEES)


class AckTaskInput(BaseModel):
    uid: UlidStr
    tid: UlidStr
    sender: UlidStr
    status: Literal[-1, 1]
    message: str = ""


class DeleteTaskInput(BaseModel):
    uid: UlidStr
    id: UlidStr


class BatchDeleteTaskInput(BaseModel):
    uid: UlidStr
    status: Literal[-1, 0, 1] | None = None


def _status(value: int | None) -> TaskStatus | None:
    return None if value is None else TaskStatus(value)


@router.post(
    "",
    status_code=201,
    response_model=SuccessResponse[TaskOutput],
    response_model_exclude_none=True,
)
async def create_task(
    body: CreateTaskInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs(
        {"action": "create_task", "uid": body.uid, "gid": body.gid, "kind": body.kind}
    )
    task = await TaskService(store_group).create_task(
        ctx,
        uid=body.uid,
        gid=body.gid or "",
        kind=body.kind,
        threshold=body.threshold,
        approvers=body.approvers,
        assignees=body.assignees,
        duedate=body.duedate,
        message=body.message,
        payload=body.payload,
        group_role=body.group_role,
    )
    return SuccessResponse(result=TaskOutput.from_task(task))


@router.get(
    "",
    response_model=SuccessResponse[TaskOutput],
    response_model_exclude_none=True,
)
async def get_task(
    uid: str = Query(pattern=ULID_PATTERN),
    id: str = Query(pattern=ULID_PATTERN),
    fields: str | None = Query(default=None, description="逗号分隔的列名"),
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs({"action": "get_task", "uid": uid, "id": id})
    selected = [f.strip() for f in fields.split(",")] if fields else None
    task = await TaskService(store_group).get_task(uid, id, selected)
    return SuccessResponse(result=TaskOutput.from_task(task))


@router.patch("", response_model=SuccessResponse[UpdatedOutput])
async def update_task(
    body: UpdateTaskInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs({"action": "update_task", "uid": body.uid, "id": body.id})
    updated_at = await TaskService(store_group).update_task(
        ctx,
        body.uid,
        body.id,
        body.updated_at,
        duedate=body.duedate,
        message=body.message,
    )
    return SuccessResponse(result=UpdatedOutput(updated_at=updated_at))


@router.patch("/assignees", response_model=SuccessResponse[UpdatedOutput])
async def update_assignees(
    body: UpdateAssigneesInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs({"action": "update_task_assignees", "uid": body.uid, "id": body.id})
    updated_at = await TaskService(store_group).update_assignees(
        ctx,
        body.uid,
        body.id,
        body.updated_at,
        remove=body.remove,
        add=body.add,
    )
    return SuccessResponse(result=UpdatedOutput(updated_at=updated_at))


@router.patch("/ack", response_model=SuccessResponse[bool])
async def ack_task(
    body: AckTaskInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs(
        {
            "action": "ack_task",
            "uid": body.uid,
            "tid": body.tid,
            "sender": body.sender,
            "status": body.status,
        }
    )
    changed = await NotificationService(store_group).ack(
        ctx, body.uid, body.tid, body.sender, body.status, body.message
    )
    return SuccessResponse(result=changed)


@router.post(
    "/list",
    response_model=SuccessResponse[list[TaskOutput]],
    response_model_exclude_none=True,
)
async def list_tasks(
    body: Pagination,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs({"action": "list_task", "uid": body.uid, "page_size": body.page_size})
    tasks, token = await TaskService(store_group).list_tasks(
        body.uid,
        body.fields,
        body.page_size,
        body.page_token,
        _status(body.status),
    )
    return SuccessResponse(
        result=[TaskOutput.from_task(t) for t in tasks],
        next_page_token=token,
    )


@router.post("/delete", response_model=SuccessResponse[bool])
async def delete_task(
    body: DeleteTaskInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs({"action": "delete_task", "uid": body.uid, "id": body.id})
    deleted = await TaskService(store_group).delete_task(ctx, body.uid, body.id)
    return SuccessResponse(result=deleted)


@router.post("/batch_delete", response_model=SuccessResponse[int])
async def batch_delete_tasks(
    body: BatchDeleteTaskInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs({"action": "batch_delete_task", "uid": body.uid, "status": body.status})
    count = await TaskService(store_group).batch_delete_tasks(
        ctx, body.uid, _status(body.status)
    )
    return SuccessResponse(result=count)
