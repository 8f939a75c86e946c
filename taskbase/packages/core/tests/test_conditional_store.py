"""ConditionalStore 测试

测试内容：
1. insert_if_absent / update_if_equals / update_if_exists 的 applied 语义
2. SetMutation 集合增删：先删后加、幂等、可交换
3. scan 倒序游标分页与等值筛选
4. 读取超时映射为 StoreTimeoutError
"""

import asyncio

import aiosqlite
import pytest
from taskbase.core.exceptions import StoreTimeoutError
from taskbase.core.store.conditional import (
    ConditionalStore,
    SetMutation,
    decode_set,
    encode_set,
)
from taskbase.core.store.sqlite_init import NOTIFICATIONS_TABLE, TASKS_TABLE

KEY = {"uid": "owner", "id": "task-1"}


async def _seed(store: ConditionalStore, **values) -> None:
    row = {**KEY, "updated_at": 100, "resolved": set(), "rejected": set(), **values}
    assert await store.insert_if_absent(TASKS_TABLE, row)


async def _set(store: ConditionalStore, column: str) -> set[str]:
    row = await store.select_one(TASKS_TABLE, [column], KEY)
    return decode_set(row[column])


class TestEncoding:
    def test_encode_is_sorted(self):
        assert encode_set({"b", "a"}) == '["a", "b"]'

    def test_decode_empty(self):
        assert decode_set(None) == set()
        assert decode_set("") == set()
        assert decode_set("[]") == set()


class TestConditionalWrites:
    async def test_insert_if_absent(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store)
        assert not await store.insert_if_absent(TASKS_TABLE, {**KEY, "kind": "again"})

        row = await store.select_one(TASKS_TABLE, ["kind", "updated_at"], KEY)
        assert row == {"kind": "", "updated_at": 100}

    async def test_rows_are_plain_dicts(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store, kind="k")
        rows = await store.scan(TASKS_TABLE, ["id", "kind"], {"uid": "owner"}, limit=10)
        assert rows == [{"id": "task-1", "kind": "k"}]
        assert type(rows[0]) is dict

    async def test_update_if_equals(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store)

        assert not await store.update_if_equals(
            TASKS_TABLE, KEY, "updated_at", 99, values={"message": "stale"}
        )
        assert await store.update_if_equals(
            TASKS_TABLE, KEY, "updated_at", 100, values={"message": "fresh", "updated_at": 101}
        )
        row = await store.select_one(TASKS_TABLE, ["message", "updated_at"], KEY)
        assert row == {"message": "fresh", "updated_at": 101}

    async def test_update_if_exists_missing_row(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        assert not await store.update_if_exists(
            TASKS_TABLE, KEY, mutations=[SetMutation.of("resolved", add=["a"])]
        )

    async def test_update_requires_assignment(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store)
        with pytest.raises(ValueError):
            await store.update_if_exists(TASKS_TABLE, KEY)

    async def test_rejects_bad_identifier(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        with pytest.raises(ValueError):
            await store.select_one("tasks; DROP TABLE tasks", ["uid"], KEY)


class TestSetMutation:
    async def test_remove_then_add(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store, resolved={"a", "b"})

        assert await store.update_if_exists(
            TASKS_TABLE,
            KEY,
            mutations=[
                SetMutation.of("resolved", remove=["a"]),
                SetMutation.of("rejected", add=["a"]),
            ],
        )
        assert await _set(store, "resolved") == {"b"}
        assert await _set(store, "rejected") == {"a"}

    async def test_same_element_in_remove_and_add_ends_present(
        self, db_conn: aiosqlite.Connection
    ):
        store = ConditionalStore(db_conn)
        await _seed(store, resolved={"a"})
        await store.update_if_exists(
            TASKS_TABLE, KEY, mutations=[SetMutation.of("resolved", add=["a"], remove=["a"])]
        )
        assert await _set(store, "resolved") == {"a"}

    async def test_idempotent(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store)
        mutation = SetMutation.of("resolved", add=["a", "b"])
        for _ in range(3):
            await store.update_if_exists(TASKS_TABLE, KEY, mutations=[mutation])
        assert await _set(store, "resolved") == {"a", "b"}

    async def test_concurrent_adds_commute(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store)
        voters = [f"v{i:02d}" for i in range(20)]
        results = await asyncio.gather(
            *(
                store.update_if_exists(
                    TASKS_TABLE, KEY, mutations=[SetMutation.of("resolved", add=[v])]
                )
                for v in voters
            )
        )
        assert all(results)
        assert await _set(store, "resolved") == set(voters)

    async def test_values_and_mutations_together(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await _seed(store, assignees={"x"})
        assert await store.update_if_equals(
            TASKS_TABLE,
            KEY,
            "updated_at",
            100,
            values={"updated_at": 200},
            mutations=[SetMutation.of("assignees", remove=["x"], add=["y"])],
        )
        assert await _set(store, "assignees") == {"y"}


class TestScan:
    async def _seed_notifications(self, store: ConditionalStore) -> None:
        for i in range(5):
            await store.insert_if_absent(
                NOTIFICATIONS_TABLE,
                {"uid": "u", "tid": f"t{i}", "sender": "s", "status": i % 2},
            )
        await store.insert_if_absent(
            NOTIFICATIONS_TABLE, {"uid": "other", "tid": "t9", "sender": "s"}
        )

    async def test_descending_cursor_pages(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await self._seed_notifications(store)

        page = await store.scan(
            NOTIFICATIONS_TABLE, ["tid"], {"uid": "u"}, cursor_column="tid", limit=2
        )
        assert [r["tid"] for r in page] == ["t4", "t3"]

        page = await store.scan(
            NOTIFICATIONS_TABLE,
            ["tid"],
            {"uid": "u"},
            cursor_column="tid",
            cursor="t3",
            limit=10,
        )
        assert [r["tid"] for r in page] == ["t2", "t1", "t0"]

    async def test_filters_ignore_none(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await self._seed_notifications(store)

        odd = await store.scan(
            NOTIFICATIONS_TABLE,
            ["tid"],
            {"uid": "u"},
            cursor_column="tid",
            filters={"status": 1},
            limit=10,
        )
        assert [r["tid"] for r in odd] == ["t3", "t1"]

        everything = await store.scan(
            NOTIFICATIONS_TABLE,
            ["tid"],
            {"uid": "u"},
            filters={"status": None},
            limit=10,
            bypass_cache=True,
        )
        assert len(everything) == 5

    async def test_delete_returns_count(self, db_conn: aiosqlite.Connection):
        store = ConditionalStore(db_conn)
        await self._seed_notifications(store)
        assert await store.delete(NOTIFICATIONS_TABLE, {"uid": "u", "status": 0}) == 3
        assert await store.delete(NOTIFICATIONS_TABLE, {"uid": "u", "status": 0}) == 0


class TestTimeout:
    async def test_slow_read_raises_store_timeout(
        self, db_conn: aiosqlite.Connection, monkeypatch
    ):
        store = ConditionalStore(db_conn, timeout_s=0.01)

        async def slow_fetchall(sql, params):
            await asyncio.sleep(1)
            return []

        monkeypatch.setattr(store, "_fetchall", slow_fetchall)
        with pytest.raises(StoreTimeoutError) as exc_info:
            await store.select_one(TASKS_TABLE, ["uid"], KEY)
        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 504
