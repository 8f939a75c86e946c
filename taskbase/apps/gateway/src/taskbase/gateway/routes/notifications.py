"""通知路由

POST /v1/notification/list          分页列出接收人的通知（附任务投影）
POST /v1/notification/delete        删除单条通知
POST /v1/notification/batch_delete  按状态批量删除接收人的通知
"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from taskbase.core.models import TaskStatus

from ..context import RequestContext
from ..deps import get_request_context, get_store_group
from ..schemas import NotificationOutput, Pagination, SuccessResponse, UlidStr
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/v1/notification")


class DeleteNotificationInput(BaseModel):
    uid: UlidStr
    tid: UlidStr
    sender: UlidStr


class BatchDeleteNotificationInput(BaseModel):
    uid: UlidStr
    status: Literal[-1, 0, 1] | None = None


@router.post(
    "/list",
    response_model=SuccessResponse[list[NotificationOutput]],
    response_model_exclude_none=True,
)
async def list_notifications(
    body: Pagination,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs(
        {"action": "list_notification", "uid": body.uid, "page_size": body.page_size}
    )
    items, token = await NotificationService(store_group).list_notifications(
        ctx,
        body.uid,
        body.fields,
        body.page_size,
        body.page_token,
        None if body.status is None else TaskStatus(body.status),
    )
    return SuccessResponse(
        result=[
            NotificationOutput.from_task_ack(task, int(ack_status))
            for task, ack_status in items
        ],
        next_page_token=token,
    )


@router.post("/delete", response_model=SuccessResponse[bool])
async def delete_notification(
    body: DeleteNotificationInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs(
        {
            "action": "delete_notification",
            "uid": body.uid,
            "tid": body.tid,
            "sender": body.sender,
        }
    )
    await NotificationService(store_group).delete_notification(
        ctx, body.uid, body.tid, body.sender
    )
    return SuccessResponse(result=True)


@router.post("/batch_delete", response_model=SuccessResponse[int])
async def batch_delete_notifications(
    body: BatchDeleteNotificationInput,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs({"action": "batch_delete_notification", "uid": body.uid})
    if body.status is not None:
        ctx.set("status", body.status)

    count = await NotificationService(store_group).batch_delete_notifications(
        ctx,
        body.uid,
        None if body.status is None else TaskStatus(body.status),
    )
    return SuccessResponse(result=count)
