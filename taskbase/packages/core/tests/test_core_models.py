"""领域模型与纯函数测试

测试内容：
1. TaskStatus.opposite
2. Task.select_fields 字段校验与补全
3. 成员检查 can_vote / has_decision_authority，终态集合
4. evaluate 流转规则（sticky / 非 sticky）
5. load_store_settings 环境变量解析
"""

import pytest
from taskbase.core.config import StoreSettings, load_store_settings
from taskbase.core.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from taskbase.core.models import (
    TERMINAL_STATES,
    Task,
    TaskField,
    TaskStatus,
    has_decision_authority,
)
from taskbase.core.store.resolver import evaluate


class TestTaskStatus:
    def test_opposite(self):
        assert TaskStatus.APPROVED.opposite() is TaskStatus.REJECTED
        assert TaskStatus.REJECTED.opposite() is TaskStatus.APPROVED

    def test_pending_has_no_opposite(self):
        with pytest.raises(ValueError):
            TaskStatus.PENDING.opposite()

    def test_terminal_states(self):
        assert TERMINAL_STATES == {TaskStatus.APPROVED, TaskStatus.REJECTED}
        assert TaskStatus.PENDING not in TERMINAL_STATES


class TestSelectFields:
    def test_empty_selects_all(self):
        assert Task.select_fields(None) == list(TaskField)
        assert Task.select_fields([]) == list(TaskField)
        assert Task.select_fields([""]) == list(TaskField)

    def test_always_adds_identity_columns(self):
        selected = Task.select_fields(["threshold"])
        assert selected == [
            TaskField.THRESHOLD,
            TaskField.GID,
            TaskField.STATUS,
            TaskField.KIND,
        ]

    def test_with_pk(self):
        selected = Task.select_fields(["message"], with_pk=True)
        assert TaskField.UID in selected
        assert TaskField.ID in selected

    def test_duplicates_collapsed(self):
        selected = Task.select_fields(["status", "status", "kind"])
        assert selected.count(TaskField.STATUS) == 1

    def test_unknown_field_rejected(self):
        with pytest.raises(InvalidArgumentError, match="Invalid field: title"):
            Task.select_fields(["threshold", "title"])


class TestMembership:
    def test_open_task_allows_everyone(self):
        task = Task(uid="o", id="t")
        assert task.can_vote("anyone")
        assert has_decision_authority(task.approvers, "anyone")

    def test_assignee_can_vote_without_authority(self):
        task = Task(uid="o", id="t", approvers={"a"}, assignees={"b"})
        assert task.can_vote("a")
        assert task.can_vote("b")
        assert not task.can_vote("c")
        assert has_decision_authority(task.approvers, "a")
        assert not has_decision_authority(task.approvers, "b")

    def test_only_assignees(self):
        task = Task(uid="o", id="t", assignees={"b"})
        assert task.can_vote("b")
        assert not task.can_vote("c")
        assert has_decision_authority(task.approvers, "b")


class TestEvaluate:
    def test_resolve_reaches_threshold(self):
        target = evaluate(
            TaskStatus.APPROVED, "a", {"a", "b"}, 2,
            TaskStatus.PENDING, {"a", "b"}, set(),
        )
        assert target is TaskStatus.APPROVED

    def test_below_threshold(self):
        target = evaluate(
            TaskStatus.APPROVED, "a", {"a", "b"}, 2,
            TaskStatus.PENDING, {"a"}, set(),
        )
        assert target is None

    def test_tie_does_not_transition(self):
        target = evaluate(
            TaskStatus.APPROVED, "a", set(), 1,
            TaskStatus.PENDING, {"a"}, {"b"},
        )
        assert target is None

    def test_voter_without_authority_never_triggers(self):
        target = evaluate(
            TaskStatus.APPROVED, "x", {"a"}, 0,
            TaskStatus.PENDING, {"x"}, set(),
        )
        assert target is None

    def test_empty_approvers_grant_authority(self):
        target = evaluate(
            TaskStatus.REJECTED, "x", set(), 1,
            TaskStatus.PENDING, set(), {"x"},
        )
        assert target is TaskStatus.REJECTED

    def test_threshold_zero(self):
        target = evaluate(
            TaskStatus.APPROVED, "a", set(), 0,
            TaskStatus.PENDING, {"a"}, set(),
        )
        assert target is TaskStatus.APPROVED

    def test_same_status_is_noop(self):
        target = evaluate(
            TaskStatus.APPROVED, "a", set(), 1,
            TaskStatus.APPROVED, {"a", "b"}, set(),
            sticky=False,
        )
        assert target is None

    def test_sticky_blocks_flip(self):
        args = (TaskStatus.REJECTED, "a", set(), 1, TaskStatus.APPROVED, set(), {"a", "b"})
        assert evaluate(*args) is None
        assert evaluate(*args, sticky=False) is TaskStatus.REJECTED

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATES))
    def test_sticky_holds_every_terminal_state(self, status):
        vote = status.opposite()
        voters = {"a", "b"}
        resolved, rejected = (voters, set()) if vote is TaskStatus.APPROVED else (set(), voters)
        args = (vote, "a", set(), 1, status, resolved, rejected)
        assert evaluate(*args) is None
        assert evaluate(*args, sticky=False) is vote

    def test_pending_vote_rejected(self):
        with pytest.raises(ValueError):
            evaluate(TaskStatus.PENDING, "a", set(), 0, TaskStatus.PENDING, set(), set())


class TestExceptions:
    def test_retryable_flags(self):
        assert ConflictError("x").retryable is True
        assert NotFoundError("x").retryable is False
        assert ConflictError("x").status_code == 409
        assert InvalidArgumentError("x").code == "INVALID_ARGUMENT"


class TestStoreSettings:
    def test_defaults(self, monkeypatch):
        for key in (
            "TASKBASE_SCAN_TIMEOUT_S",
            "TASKBASE_SCAN_BATCH_SIZE",
            "TASKBASE_STICKY_STATUS",
        ):
            monkeypatch.delenv(key, raising=False)
        settings = load_store_settings()
        assert settings == StoreSettings()
        assert settings.sticky_status is True

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TASKBASE_SCAN_TIMEOUT_S", "0.5")
        monkeypatch.setenv("TASKBASE_SCAN_BATCH_SIZE", "50")
        monkeypatch.setenv("TASKBASE_STICKY_STATUS", "false")
        settings = load_store_settings()
        assert settings.scan_timeout_s == 0.5
        assert settings.scan_batch_size == 50
        assert settings.sticky_status is False

    def test_invalid_number_falls_back(self, monkeypatch):
        monkeypatch.setenv("TASKBASE_SCAN_BATCH_SIZE", "lots")
        monkeypatch.delenv("TASKBASE_SCAN_TIMEOUT_S", raising=False)
        assert load_store_settings().scan_batch_size == 1000

    @pytest.mark.parametrize(
        ("env_var", "value"),
        [
            ("TASKBASE_SCAN_TIMEOUT_S", "0"),
            ("TASKBASE_SCAN_TIMEOUT_S", "-1"),
            ("TASKBASE_SCAN_BATCH_SIZE", "0"),
            ("TASKBASE_SCAN_BATCH_SIZE", "-5"),
        ],
    )
    def test_out_of_range_falls_back(self, monkeypatch, env_var, value):
        monkeypatch.delenv("TASKBASE_SCAN_TIMEOUT_S", raising=False)
        monkeypatch.delenv("TASKBASE_SCAN_BATCH_SIZE", raising=False)
        monkeypatch.setenv(env_var, value)
        settings = load_store_settings()
        assert settings.scan_timeout_s == 3.0
        assert settings.scan_batch_size == 1000

    def test_one_bad_value_keeps_the_other(self, monkeypatch):
        monkeypatch.setenv("TASKBASE_SCAN_TIMEOUT_S", "-1")
        monkeypatch.setenv("TASKBASE_SCAN_BATCH_SIZE", "25")
        settings = load_store_settings()
        assert settings.scan_timeout_s == 3.0
        assert settings.scan_batch_size == 25
