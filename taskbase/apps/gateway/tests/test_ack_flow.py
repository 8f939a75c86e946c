"""通知确认（ack）流程测试

测试内容：
1. ack 投票并写回通知状态
2. 相同状态重复 ack 为无写入的 no-op
3. 改票：从通过改为拒绝
4. 非成员 ack 被拒绝（403）、通知不存在（404）、非法状态（422）
5. NotificationService.ack 直接调用时的状态校验
"""

import pytest
from httpx import AsyncClient
from taskbase.core.exceptions import InvalidArgumentError
from taskbase.core.models import Notification, TaskStatus
from taskbase.gateway.context import RequestContext
from taskbase.gateway.services.notification_service import NotificationService
from ulid import ULID


def _id() -> str:
    return str(ULID())


async def _create(client: AsyncClient, **body) -> dict:
    resp = await client.post("/v1/task", json={"uid": _id(), **body})
    assert resp.status_code == 201, resp.text
    return resp.json()["result"]


async def _ack(client: AsyncClient, task: dict, uid: str, status: int, message: str = ""):
    return await client.patch(
        "/v1/task/ack",
        json={
            "uid": uid,
            "tid": task["id"],
            "sender": task["uid"],
            "status": status,
            "message": message,
        },
    )


class TestAck:
    async def test_ack_votes_and_updates_notification(self, client: AsyncClient, app):
        approver = _id()
        task = await _create(client, threshold=1, approvers=[approver])

        resp = await _ack(client, task, approver, 1, "lgtm")
        assert resp.status_code == 200
        assert resp.json()["result"] is True

        stores = app.state.store_group
        n = await stores.notification_store.get_notification(
            approver, task["id"], task["uid"]
        )
        assert n.status is TaskStatus.APPROVED
        assert n.message == "lgtm"

        loaded = await stores.task_store.get_task(task["uid"], task["id"])
        assert loaded.status is TaskStatus.APPROVED
        assert loaded.resolved == {approver}

    async def test_repeat_ack_is_noop(self, client: AsyncClient, app, monkeypatch):
        approver = _id()
        task = await _create(client, threshold=2, approvers=[approver, _id()])
        assert (await _ack(client, task, approver, 1)).json()["result"] is True

        stores = app.state.store_group
        before = await stores.task_store.get_task(task["uid"], task["id"])

        async def must_not_vote(*args, **kwargs):
            raise AssertionError("vote cast on no-op ack")

        monkeypatch.setattr(stores.task_store, "cast_resolve_vote", must_not_vote)
        monkeypatch.setattr(stores.task_store, "cast_reject_vote", must_not_vote)

        resp = await _ack(client, task, approver, 1, "again")
        assert resp.status_code == 200
        assert resp.json()["result"] is False

        after = await stores.task_store.get_task(task["uid"], task["id"])
        assert after == before
        n = await stores.notification_store.get_notification(
            approver, task["id"], task["uid"]
        )
        assert n.message == ""

    async def test_change_vote(self, client: AsyncClient, app):
        a, b = _id(), _id()
        task = await _create(client, threshold=2, assignees=[a, b])

        await _ack(client, task, a, 1)
        resp = await _ack(client, task, a, -1)
        assert resp.json()["result"] is True

        loaded = await app.state.store_group.task_store.get_task(task["uid"], task["id"])
        assert loaded.resolved == set()
        assert loaded.rejected == {a}
        assert loaded.status is TaskStatus.PENDING

    async def test_outsider_denied(self, client: AsyncClient, app):
        task = await _create(client, threshold=1, approvers=[_id()])
        outsider = _id()
        # 手工补一条不属于成员的通知
        await app.state.store_group.notification_store.create_notification(
            Notification(uid=outsider, tid=task["id"], sender=task["uid"])
        )
        resp = await _ack(client, task, outsider, 1)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "PERMISSION_DENIED"

        n = await app.state.store_group.notification_store.get_notification(
            outsider, task["id"], task["uid"]
        )
        assert n.status is TaskStatus.PENDING

    async def test_missing_notification(self, client: AsyncClient):
        task = await _create(client)
        resp = await _ack(client, task, _id(), 1)
        assert resp.status_code == 404

    async def test_invalid_status(self, client: AsyncClient):
        task = await _create(client)
        resp = await _ack(client, task, _id(), 0)
        assert resp.status_code == 422


class TestAckService:
    async def test_pending_status_rejected(self, app):
        service = NotificationService(app.state.store_group)
        ctx = RequestContext(method="PATCH", path="/v1/task/ack")
        with pytest.raises(InvalidArgumentError, match="expected -1 or 1"):
            await service.ack(ctx, _id(), _id(), _id(), 0)
