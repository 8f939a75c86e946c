"""Conditional Store Adapter -- 单分区条件写入 / 读取

每个方法对应后端存储的一条语句。连接以自动提交模式打开，
因此每条语句都是一个独立的单行事务（轻量事务语义）：

- insert_if_absent: INSERT ... ON CONFLICT DO NOTHING
- update_if_equals: UPDATE ... WHERE <主键> AND <列> = <期望值>
- update_if_exists: UPDATE ... WHERE <主键>
- SetMutation: 在同一条 UPDATE 内由 JSON1 完成集合增删，可交换且幂等
- scan: 分区等值 + 可选 "<" 游标，按游标列倒序，LIMIT 有界，单次超时
"""

import asyncio
import json
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import aiosqlite
import structlog

from ..exceptions import StoreTimeoutError

log = structlog.get_logger()

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

# 先移除后添加；UNION 负责去重
_SET_MERGE_SQL = (
    "{column} = (SELECT json_group_array(value) FROM ("
    "SELECT value FROM json_each({table}.{column}) "
    "WHERE value NOT IN (SELECT value FROM json_each(?)) "
    "UNION SELECT value FROM json_each(?) "
    "ORDER BY value))"
)

Row = dict[str, Any]


@dataclass(frozen=True)
class SetMutation:
    """集合列的增删操作"""

    column: str
    add: frozenset[str] = frozenset()
    remove: frozenset[str] = frozenset()

    @classmethod
    def of(
        cls,
        column: str,
        add: Iterable[str] = (),
        remove: Iterable[str] = (),
    ) -> "SetMutation":
        return cls(column=column, add=frozenset(add), remove=frozenset(remove))


def encode_set(values: Iterable[str]) -> str:
    """集合 -> 有序 JSON 数组文本"""
    return json.dumps(sorted(values), ensure_ascii=False)


def decode_set(raw: str | None) -> set[str]:
    """JSON 数组文本 -> 集合"""
    if not raw:
        return set()
    return set(json.loads(raw))


def _encode_value(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return encode_set(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _ident(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"invalid identifier: {name!r}")
    return name


def _where(conditions: Mapping[str, Any]) -> tuple[list[str], list[Any]]:
    clauses = [f"{_ident(col)} = ?" for col in conditions]
    params = [_encode_value(v) for v in conditions.values()]
    return clauses, params


class ConditionalStore:
    """SQLite 上的条件写入适配器

    所有写操作返回 applied 标记，前置条件不满足不是异常，
    由调用方决定映射为何种错误。
    """

    def __init__(self, conn: aiosqlite.Connection, timeout_s: float = 3.0) -> None:
        self._conn = conn
        self._timeout_s = timeout_s

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    async def insert_if_absent(self, table: str, values: Mapping[str, Any]) -> bool:
        """主键不存在时插入，返回是否写入"""
        columns = ", ".join(_ident(col) for col in values)
        placeholders = ", ".join("?" for _ in values)
        sql = (
            f"INSERT INTO {_ident(table)} ({columns}) VALUES ({placeholders}) "
            "ON CONFLICT DO NOTHING"
        )
        params = [_encode_value(v) for v in values.values()]
        return await self._write(sql, params) == 1

    async def update_if_equals(
        self,
        table: str,
        key: Mapping[str, Any],
        column: str,
        expected: Any,
        values: Mapping[str, Any] | None = None,
        mutations: Sequence[SetMutation] = (),
    ) -> bool:
        """指定列仍等于期望值时更新（compare-and-swap）"""
        return await self._update(table, key, values, mutations, {column: expected})

    async def update_if_exists(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any] | None = None,
        mutations: Sequence[SetMutation] = (),
    ) -> bool:
        """行存在时更新，用于可交换的集合增删"""
        return await self._update(table, key, values, mutations, {})

    async def select_one(
        self,
        table: str,
        columns: Sequence[str],
        key: Mapping[str, Any],
    ) -> Row | None:
        """按主键读取一行"""
        clauses, params = _where(key)
        sql = (
            f"SELECT {', '.join(_ident(c) for c in columns)} FROM {_ident(table)} "
            f"WHERE {' AND '.join(clauses)} LIMIT 1"
        )
        rows = await self._fetch(sql, params, f"select {table}", self._timeout_s)
        return rows[0] if rows else None

    async def scan(
        self,
        table: str,
        columns: Sequence[str],
        partition: Mapping[str, Any],
        *,
        cursor_column: str | None = None,
        cursor: Any = None,
        filters: Mapping[str, Any] | None = None,
        limit: int,
        bypass_cache: bool = False,
        timeout_s: float | None = None,
    ) -> list[Row]:
        """分区扫描

        Args:
            table: 表名
            columns: 返回的列
            partition: 分区键等值条件
            cursor_column: 游标列，结果按此列倒序
            cursor: 仅返回 cursor_column < cursor 的行
            filters: 额外等值条件（值为 None 的条件忽略）
            limit: 最大行数
            bypass_cache: 大批量顺序扫描提示；SQLite 不缓存行，仅记录日志
            timeout_s: 单次超时，默认使用适配器配置
        """
        clauses, params = _where(partition)
        extra = {k: v for k, v in (filters or {}).items() if v is not None}
        extra_clauses, extra_params = _where(extra)
        clauses += extra_clauses
        params += extra_params

        if cursor_column is not None and cursor is not None:
            clauses.append(f"{_ident(cursor_column)} < ?")
            params.append(_encode_value(cursor))

        sql = f"SELECT {', '.join(_ident(c) for c in columns)} FROM {_ident(table)}"
        if clauses:
            sql += f" WHERE {' AND '.join(clauses)}"
        if cursor_column is not None:
            sql += f" ORDER BY {_ident(cursor_column)} DESC"
        sql += " LIMIT ?"
        params.append(limit)

        if bypass_cache:
            log.debug("store_scan_bypass_cache", table=table, limit=limit)

        return await self._fetch(
            sql,
            params,
            f"scan {table}",
            timeout_s if timeout_s is not None else self._timeout_s,
        )

    async def delete(self, table: str, where: Mapping[str, Any]) -> int:
        """无条件删除，返回删除行数"""
        clauses, params = _where(where)
        sql = f"DELETE FROM {_ident(table)} WHERE {' AND '.join(clauses)}"
        return await self._write(sql, params)

    async def _update(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any] | None,
        mutations: Sequence[SetMutation],
        expected: Mapping[str, Any],
    ) -> bool:
        assignments: list[str] = []
        params: list[Any] = []
        for col, value in (values or {}).items():
            assignments.append(f"{_ident(col)} = ?")
            params.append(_encode_value(value))
        for mutation in mutations:
            assignments.append(
                _SET_MERGE_SQL.format(
                    table=_ident(table),
                    column=_ident(mutation.column),
                )
            )
            params.append(encode_set(mutation.remove))
            params.append(encode_set(mutation.add))
        if not assignments:
            raise ValueError("update requires at least one assignment")

        clauses, where_params = _where({**key, **expected})
        sql = (
            f"UPDATE {_ident(table)} SET {', '.join(assignments)} "
            f"WHERE {' AND '.join(clauses)}"
        )
        return await self._write(sql, params + where_params) == 1

    async def _write(self, sql: str, params: Sequence[Any]) -> int:
        cursor = await self._conn.execute(sql, params)
        count = cursor.rowcount
        await cursor.close()
        await self._conn.commit()
        return count

    async def _fetch(
        self,
        sql: str,
        params: Sequence[Any],
        operation: str,
        timeout_s: float,
    ) -> list[Row]:
        try:
            return await asyncio.wait_for(self._fetchall(sql, params), timeout=timeout_s)
        except TimeoutError:
            log.warning("store_read_timeout", operation=operation, timeout_s=timeout_s)
            raise StoreTimeoutError(operation, timeout_s) from None

    async def _fetchall(self, sql: str, params: Sequence[Any]) -> list[Row]:
        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        await cursor.close()
        # 连接的 row_factory 为 aiosqlite.Row
        return [dict(row) for row in rows]
