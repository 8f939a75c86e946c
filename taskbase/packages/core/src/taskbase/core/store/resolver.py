"""Approval Resolver -- 投票后的聚合状态评估

每次投票写入集合后调用：重新读取 threshold/status/resolved/rejected，
判断是否越过阈值，若越过则发出状态写入。状态写入与投票写入相互独立。

流转规则（以通过票为例，拒绝票对称）：
    status != APPROVED
    且 (approvers 为空 或 投票者属于 approvers)
    且 |resolved| >= threshold
    且 |resolved| > |rejected|

sticky 策略下仅允许从 PENDING 流转，状态写入是 status = PENDING 的
compare-and-swap，同一窗口内相反方向的两次越阈只有先到者生效。
"""

from collections.abc import Set

import structlog

from ..exceptions import ConflictError, NotFoundError
from ..models.enums import TERMINAL_STATES, TaskField, TaskStatus
from ..models.task import has_decision_authority
from ..models.vote import VoteResult
from .conditional import ConditionalStore, decode_set
from .sqlite_init import TASKS_TABLE

log = structlog.get_logger()

_EVALUATION_FIELDS = [
    TaskField.THRESHOLD.value,
    TaskField.STATUS.value,
    TaskField.RESOLVED.value,
    TaskField.REJECTED.value,
]


def evaluate(
    vote: TaskStatus,
    voter: str,
    approvers: Set[str],
    threshold: int,
    status: TaskStatus,
    resolved: Set[str],
    rejected: Set[str],
    sticky: bool = True,
) -> TaskStatus | None:
    """评估一次投票后是否需要流转

    Returns:
        目标状态；无需流转时返回 None
    """
    if vote is TaskStatus.PENDING:
        raise ValueError("vote must be APPROVED or REJECTED")
    if sticky and status in TERMINAL_STATES:
        return None
    if status is vote:
        return None
    if not has_decision_authority(approvers, voter):
        return None

    ours, theirs = (resolved, rejected) if vote is TaskStatus.APPROVED else (rejected, resolved)
    if len(ours) >= threshold and len(ours) > len(theirs):
        return vote
    return None


class ApprovalResolver:
    """投票后的状态流转"""

    def __init__(self, store: ConditionalStore, sticky: bool = True) -> None:
        self._store = store
        self._sticky = sticky

    @property
    def sticky(self) -> bool:
        return self._sticky

    async def resolve(
        self,
        uid: str,
        task_id: str,
        voter: str,
        vote: TaskStatus,
        approvers: Set[str],
    ) -> VoteResult:
        """重新读取投票集合并在越过阈值时写入状态

        Raises:
            NotFoundError: 任务在投票后被删除
            ConflictError: 非 sticky 模式下状态写入时任务已不存在
        """
        key = {"uid": uid, "id": task_id}
        row = await self._store.select_one(TASKS_TABLE, _EVALUATION_FIELDS, key)
        if row is None:
            raise NotFoundError(f"Task {uid}/{task_id} not found")

        status = TaskStatus(row["status"])
        resolved = decode_set(row["resolved"])
        rejected = decode_set(row["rejected"])
        result = VoteResult(
            status=status,
            resolved_count=len(resolved),
            rejected_count=len(rejected),
        )

        target = evaluate(
            vote,
            voter,
            approvers,
            row["threshold"],
            status,
            resolved,
            rejected,
            sticky=self._sticky,
        )
        if target is None:
            return result

        if self._sticky:
            applied = await self._store.update_if_equals(
                TASKS_TABLE,
                key,
                TaskField.STATUS.value,
                TaskStatus.PENDING,
                values={TaskField.STATUS.value: target},
            )
            if not applied:
                # 另一位投票者先完成了流转，返回胜出的状态
                current = await self._store.select_one(
                    TASKS_TABLE, [TaskField.STATUS.value], key
                )
                if current is None:
                    raise NotFoundError(f"Task {uid}/{task_id} not found")
                log.info(
                    "task_status_transition_lost",
                    uid=uid,
                    task_id=task_id,
                    target=target.name,
                    current=TaskStatus(current["status"]).name,
                )
                return result.model_copy(update={"status": TaskStatus(current["status"])})
        else:
            applied = await self._store.update_if_exists(
                TASKS_TABLE,
                key,
                values={TaskField.STATUS.value: target},
            )
            if not applied:
                raise ConflictError("Task status update failed, please try again")

        log.info(
            "task_status_transition",
            uid=uid,
            task_id=task_id,
            voter=voter,
            from_status=status.name,
            to_status=target.name,
            resolved=len(resolved),
            rejected=len(rejected),
        )
        return result.model_copy(update={"status": target, "transitioned": True})
