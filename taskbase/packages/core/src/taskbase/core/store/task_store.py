"""TaskStore SQLite 实现 -- 任务聚合的条件写入协议

两种一致性手段并存：
- 标量更新（duedate/message/assignees）以 updated_at 为版本令牌做 CAS，
  过期写入一律以 ConflictError 失败，不会静默覆盖；
- 投票是集合列的可交换增删，不做版本检查，并发投票全部落地，
  随后由 ApprovalResolver 重新评估聚合状态。
"""

import time
from collections.abc import Iterable, Mapping
from typing import Any

from ..exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from ..models.enums import MUTABLE_FIELDS, SET_FIELDS, VOTE_FIELD, TaskField, TaskStatus
from ..models.task import Task
from ..models.vote import VoteResult
from .conditional import ConditionalStore, Row, SetMutation, decode_set
from .resolver import ApprovalResolver
from .sqlite_init import TASKS_TABLE


def unix_ms() -> int:
    """当前毫秒时间戳"""
    return int(time.time() * 1000)


def _next_version(expected: int) -> int:
    # 同一毫秒内的两次写入也必须得到不同的版本令牌
    return max(unix_ms(), expected + 1)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(
        self,
        store: ConditionalStore,
        resolver: ApprovalResolver | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver or ApprovalResolver(store)

    async def create_task(self, task: Task) -> Task:
        """创建任务记录

        规范化 status=PENDING、created_at=updated_at=now、resolved=rejected=∅。
        主键冲突时抛出 ConflictError，调用方应换一个新的 id 重试。
        """
        now = unix_ms()
        doc = task.model_copy(
            update={
                "status": TaskStatus.PENDING,
                "created_at": now,
                "updated_at": now,
                "resolved": set(),
                "rejected": set(),
                "selected": list(TaskField),
            }
        )
        values = {field.value: getattr(doc, field.value) for field in TaskField}
        if not await self._store.insert_if_absent(TASKS_TABLE, values):
            raise ConflictError("Task save failed, please try again")
        return doc

    async def get_task(
        self,
        uid: str,
        task_id: str,
        fields: Iterable[str] | None = None,
        with_pk: bool = False,
    ) -> Task:
        """按字段选择读取任务

        Raises:
            InvalidArgumentError: 字段名非法
            NotFoundError: 任务不存在
        """
        selected = Task.select_fields(fields, with_pk)
        row = await self._store.select_one(
            TASKS_TABLE,
            [f.value for f in selected],
            self._key(uid, task_id),
        )
        if row is None:
            raise NotFoundError(f"Task {uid}/{task_id} not found")
        return self._row_to_task(row, selected, uid=uid, task_id=task_id)

    async def update_scalar(
        self,
        uid: str,
        task_id: str,
        changes: Mapping[str, Any],
        updated_at: int,
    ) -> int:
        """乐观并发更新 duedate / message

        Args:
            changes: 列名 -> 新值，仅允许 duedate、message
            updated_at: 调用方持有的版本令牌

        Returns:
            新的版本令牌，可用于下一次更新

        Raises:
            InvalidArgumentError: 列名或取值非法
            ConflictError: 版本令牌过期
        """
        if not changes:
            raise InvalidArgumentError("No fields to update")

        values: dict[str, Any] = {}
        for name, value in changes.items():
            try:
                field = TaskField(name)
            except ValueError:
                field = None
            if field not in MUTABLE_FIELDS:
                raise InvalidArgumentError(f"Invalid field: {name}")
            values[field.value] = self._check_scalar(field, value)

        current = await self.get_task(
            uid, task_id, [TaskField.STATUS, TaskField.UPDATED_AT]
        )
        self._check_version(current, updated_at)

        new_updated_at = _next_version(updated_at)
        values[TaskField.UPDATED_AT.value] = new_updated_at
        applied = await self._store.update_if_equals(
            TASKS_TABLE,
            self._key(uid, task_id),
            TaskField.UPDATED_AT.value,
            updated_at,
            values=values,
        )
        if not applied:
            raise ConflictError("Task update failed, please try again")
        return new_updated_at

    async def update_assignees(
        self,
        uid: str,
        task_id: str,
        remove: Iterable[str],
        add: Iterable[str],
        updated_at: int,
    ) -> int:
        """先移除后添加 assignees，每一步都以版本令牌 CAS 并重新盖章

        两步之间没有回滚：移除成功而添加失败时，移除的效果保留，
        并抛出 ConflictError。

        Returns:
            最后一次写入后的版本令牌
        """
        remove_ids = frozenset(remove)
        add_ids = frozenset(add)

        current = await self.get_task(uid, task_id, [TaskField.UPDATED_AT])
        self._check_version(current, updated_at)

        steps: list[SetMutation] = []
        if remove_ids:
            steps.append(SetMutation.of(TaskField.ASSIGNEES.value, remove=remove_ids))
        if add_ids:
            steps.append(SetMutation.of(TaskField.ASSIGNEES.value, add=add_ids))

        expected = updated_at
        for mutation in steps:
            new_updated_at = _next_version(expected)
            applied = await self._store.update_if_equals(
                TASKS_TABLE,
                self._key(uid, task_id),
                TaskField.UPDATED_AT.value,
                expected,
                values={TaskField.UPDATED_AT.value: new_updated_at},
                mutations=[mutation],
            )
            if not applied:
                raise ConflictError("Task update failed, please try again")
            expected = new_updated_at
        return expected

    async def cast_resolve_vote(self, uid: str, task_id: str, voter: str) -> VoteResult:
        """投通过票：从 rejected 移除并加入 resolved，然后评估聚合状态"""
        return await self._cast_vote(uid, task_id, voter, TaskStatus.APPROVED)

    async def cast_reject_vote(self, uid: str, task_id: str, voter: str) -> VoteResult:
        """投拒绝票：从 resolved 移除并加入 rejected，然后评估聚合状态"""
        return await self._cast_vote(uid, task_id, voter, TaskStatus.REJECTED)

    async def delete_task(self, uid: str, task_id: str) -> Task | None:
        """删除任务

        Returns:
            删除前读取到的任务（含 gid）；任务已不存在时返回 None
        """
        try:
            doc = await self.get_task(uid, task_id, [TaskField.GID])
        except NotFoundError:
            return None

        await self._store.delete(TASKS_TABLE, self._key(uid, task_id))
        return doc

    async def list_tasks(
        self,
        uid: str,
        fields: Iterable[str] | None = None,
        page_size: int = 10,
        page_token: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """按 id 倒序分页列出所有者的任务"""
        selected = Task.select_fields(fields, with_pk=True)
        rows = await self._store.scan(
            TASKS_TABLE,
            [f.value for f in selected],
            {TaskField.UID.value: uid},
            cursor_column=TaskField.ID.value,
            cursor=page_token,
            filters={TaskField.STATUS.value: status},
            limit=page_size,
            bypass_cache=True,
        )
        return [self._row_to_task(row, selected) for row in rows]

    async def list_task_ids(
        self,
        uid: str,
        status: TaskStatus | None = None,
        page_size: int = 1000,
        page_token: str | None = None,
    ) -> list[str]:
        """仅扫描主键，用于批量删除"""
        rows = await self._store.scan(
            TASKS_TABLE,
            [TaskField.ID.value],
            {TaskField.UID.value: uid},
            cursor_column=TaskField.ID.value,
            cursor=page_token,
            filters={TaskField.STATUS.value: status},
            limit=page_size,
            bypass_cache=True,
        )
        return [row[TaskField.ID.value] for row in rows]

    async def _cast_vote(
        self,
        uid: str,
        task_id: str,
        voter: str,
        vote: TaskStatus,
    ) -> VoteResult:
        action = "resolve" if vote is TaskStatus.APPROVED else "reject"
        members = await self.get_task(
            uid, task_id, [TaskField.APPROVERS, TaskField.ASSIGNEES]
        )
        if not members.can_vote(voter):
            raise PermissionDeniedError(f"can not {action} task")

        applied = await self._store.update_if_exists(
            TASKS_TABLE,
            self._key(uid, task_id),
            mutations=[
                SetMutation.of(VOTE_FIELD[vote.opposite()].value, remove=[voter]),
                SetMutation.of(VOTE_FIELD[vote].value, add=[voter]),
            ],
        )
        if not applied:
            raise ConflictError(f"Task {action} failed, please try again")

        return await self._resolver.resolve(
            uid, task_id, voter, vote, members.approvers
        )

    @staticmethod
    def _key(uid: str, task_id: str) -> dict[str, str]:
        return {TaskField.UID.value: uid, TaskField.ID.value: task_id}

    @staticmethod
    def _check_version(current: Task, updated_at: int) -> None:
        if current.updated_at != updated_at:
            raise ConflictError(
                f"Task updated_at conflict, expected updated_at {current.updated_at}, "
                f"got {updated_at}"
            )

    @staticmethod
    def _check_scalar(field: TaskField, value: Any) -> Any:
        if field is TaskField.DUEDATE:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidArgumentError(f"Invalid duedate: {value!r}")
        elif not isinstance(value, str):
            raise InvalidArgumentError(f"Invalid {field.value}: {value!r}")
        return value

    @staticmethod
    def _row_to_task(
        row: Row,
        selected: list[TaskField],
        uid: str | None = None,
        task_id: str | None = None,
    ) -> Task:
        """将数据库行转换为 Task 模型"""
        data: dict[str, Any] = {
            TaskField.UID.value: row.get(TaskField.UID.value, uid),
            TaskField.ID.value: row.get(TaskField.ID.value, task_id),
        }
        for field in selected:
            value = row[field.value]
            if field in SET_FIELDS:
                value = decode_set(value)
            elif field is TaskField.PAYLOAD:
                value = bytes(value or b"")
            data[field.value] = value

        task = Task(**data)
        task.selected = list(selected)
        return task
