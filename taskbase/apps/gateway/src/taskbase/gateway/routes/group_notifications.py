"""群组通知路由

POST /v1/group_notification/list  分页列出群组通知，可按 role 筛选
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from taskbase.core.config import (
    DEFAULT_PAGE_SIZE,
    MAX_GROUP_ROLE,
    MAX_PAGE_SIZE,
    MIN_GROUP_ROLE,
)

from ..context import RequestContext
from ..deps import get_request_context, get_store_group
from ..schemas import GroupNotificationOutput, SuccessResponse, UlidStr
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/v1/group_notification")


class GroupPagination(BaseModel):
    gid: UlidStr
    page_token: UlidStr | None = None
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    role: int | None = Field(default=None, ge=MIN_GROUP_ROLE, le=MAX_GROUP_ROLE)


@router.post(
    "/list",
    response_model=SuccessResponse[list[GroupNotificationOutput]],
    response_model_exclude_none=True,
)
async def list_group_notifications(
    body: GroupPagination,
    ctx: RequestContext = Depends(get_request_context),
    store_group=Depends(get_store_group),
):
    ctx.set_kvs(
        {
            "action": "list_group_notification",
            "gid": body.gid,
            "page_size": body.page_size,
        }
    )
    items, token = await NotificationService(store_group).list_group_notifications(
        body.gid, body.page_size, body.page_token, body.role
    )
    return SuccessResponse(
        result=[GroupNotificationOutput.from_model(n) for n in items],
        next_page_token=token,
    )
