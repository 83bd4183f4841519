from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeAlias, TypeVar

import psycopg

from ._capture import Behavior, can_dereference
from ._command import Settings
from ._errors import NoCursorColumnsError
from ._reader import DereferencingReader

try:
    import sqlalchemy.ext.asyncio

    _SA_ASYNC_SESSION_TYPES: tuple[type, ...] = (
        sqlalchemy.ext.asyncio.AsyncSession,
    )
    _SA_ASYNC_CONN_TYPES: tuple[type, ...] = (
        sqlalchemy.ext.asyncio.AsyncConnection,
    )
except ImportError:  # pragma: no cover
    _SA_ASYNC_SESSION_TYPES = ()
    _SA_ASYNC_CONN_TYPES = ()


if TYPE_CHECKING:
    from ._dbapi import (
        AsyncDBAPIConnection,
        AsyncDBAPICursor,
        DBAPIConnection,
        DBAPICursor,
    )


T = TypeVar("T")

# column names and rows of one result set
RowSet: TypeAlias = tuple[list[str], list[Sequence[Any]]]

DEFAULT_SETTINGS = Settings()


def _execute_sync(
    conn: DBAPIConnection,
    sql: str,
    args: tuple[object, ...],
) -> DBAPICursor:
    cursor = conn.cursor()
    cursor.execute(sql, args) if args else cursor.execute(sql)
    return cursor


async def _execute_async(
    conn: AsyncDBAPIConnection,
    sql: str,
    args: tuple[object, ...],
) -> AsyncDBAPICursor:
    cursor = conn.cursor()
    await cursor.execute(sql, args or None)
    return cursor


async def _async_connection(
    executor: psycopg.AsyncConnection
    | sqlalchemy.ext.asyncio.AsyncSession
    | sqlalchemy.ext.asyncio.AsyncConnection,
) -> AsyncDBAPIConnection:
    if isinstance(executor, _SA_ASYNC_CONN_TYPES):
        pool_proxied = await executor.get_raw_connection()  # type: ignore[attr-defined]
        executor = pool_proxied.driver_connection
    elif isinstance(executor, _SA_ASYNC_SESSION_TYPES):
        sa_connection = await executor.connection()  # type: ignore[attr-defined]
        pool_proxied = await sa_connection.get_raw_connection()
        executor = pool_proxied.driver_connection

    if isinstance(executor, psycopg.Connection) or not hasattr(executor, "cursor"):
        msg = f"unsupported executor type: {type(executor).__name__}"
        raise TypeError(msg)
    return executor  # type: ignore[return-value]


def _col_names(description: Sequence[Sequence[Any]] | None) -> list[str]:
    if description is None:
        msg = "query returned no description"
        raise RuntimeError(msg)
    return [desc[0] for desc in description]


def _construct_dbapi_result(
    result_type: type[T], cols: list[str], row: Sequence[Any]
) -> T:
    if dataclasses.is_dataclass(result_type) or hasattr(
        result_type, "model_fields"
    ):
        return result_type(**dict(zip(cols, row, strict=True)))
    return row[0]  # type: ignore[no-any-return]


def _construct_sets(result_type: type[T], sets: list[RowSet]) -> list[list[T]]:
    return [
        [_construct_dbapi_result(result_type, cols, row) for row in rows]
        for cols, rows in sets
    ]


def _plain_set(
    description: Sequence[Sequence[Any]] | None,
    rows: Sequence[Sequence[Any]],
) -> RowSet:
    return _col_names(description), list(rows)


def _wants_more(behavior: Behavior, rows: list[Sequence[Any]]) -> bool:
    return behavior is not Behavior.SINGLE_ROW or not rows


def open_reader_sync(
    conn: DBAPIConnection,
    sql: str,
    args: tuple[object, ...],
    behavior: Behavior = Behavior.DEFAULT,
    settings: Settings = DEFAULT_SETTINGS,
) -> DereferencingReader:
    cursor = _execute_sync(conn, sql, args)
    if not can_dereference(cursor):
        cursor.close()
        raise NoCursorColumnsError(sql)
    return DereferencingReader.open(cursor, conn, behavior=behavior, factory=settings)


async def open_reader(
    conn: AsyncDBAPIConnection,
    sql: str,
    args: tuple[object, ...],
    behavior: Behavior = Behavior.DEFAULT,
    settings: Settings = DEFAULT_SETTINGS,
    cancel: asyncio.Event | None = None,
) -> DereferencingReader:
    cursor = await _execute_async(conn, sql, args)
    if not can_dereference(cursor):
        await cursor.close()
        raise NoCursorColumnsError(sql)
    return await DereferencingReader.open_async(
        cursor, conn, behavior=behavior, factory=settings, cancel=cancel
    )


def _read_sets_sync(
    conn: DBAPIConnection,
    sql: str,
    args: tuple[object, ...],
    behavior: Behavior,
    settings: Settings,
) -> list[RowSet]:
    cursor = _execute_sync(conn, sql, args)
    if not (settings.auto_dereference and can_dereference(cursor)):
        try:
            if behavior is Behavior.SINGLE_ROW:
                row = cursor.fetchone()
                return [_plain_set(cursor.description, [] if row is None else [row])]
            return [_plain_set(cursor.description, cursor.fetchall())]
        finally:
            cursor.close()

    sets: list[RowSet] = []
    with DereferencingReader.open(
        cursor, conn, behavior=behavior, factory=settings
    ) as reader:
        # no description when every captured handle was NULL, or none came back
        while reader.description is not None:
            cols = _col_names(reader.description)
            rows: list[Sequence[Any]] = []
            while _wants_more(behavior, rows) and reader.read():
                rows.append(reader.current_row)
            sets.append((cols, rows))
            if behavior.early_quit or not reader.next_result():
                break
    return sets


async def _read_sets(
    conn: AsyncDBAPIConnection,
    sql: str,
    args: tuple[object, ...],
    behavior: Behavior,
    settings: Settings,
) -> list[RowSet]:
    cursor = await _execute_async(conn, sql, args)
    if not (settings.auto_dereference and can_dereference(cursor)):
        try:
            if behavior is Behavior.SINGLE_ROW:
                row = await cursor.fetchone()
                return [_plain_set(cursor.description, [] if row is None else [row])]
            return [_plain_set(cursor.description, await cursor.fetchall())]
        finally:
            await cursor.close()

    sets: list[RowSet] = []
    reader = await DereferencingReader.open_async(
        cursor, conn, behavior=behavior, factory=settings
    )
    async with reader:
        while reader.description is not None:
            cols = _col_names(reader.description)
            rows: list[Sequence[Any]] = []
            while _wants_more(behavior, rows) and await reader.read_async():
                rows.append(reader.current_row)
            sets.append((cols, rows))
            if behavior.early_quit or not await reader.next_result_async():
                break
    return sets


class Query(Generic[T]):
    """A query whose refcursor results, if any, are dereferenced on fetch."""

    def __init__(
        self,
        sql: str,
        result_type: type[T],
        *args: object,
    ) -> None:
        self.sql = sql
        self.args = args
        self.result_type = result_type

    async def fetch_sets(
        self,
        executor: psycopg.AsyncConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> list[list[T]]:
        conn = await _async_connection(executor)
        sets = await _read_sets(conn, self.sql, self.args, Behavior.DEFAULT, settings)
        return _construct_sets(self.result_type, sets)

    async def fetch_all(
        self,
        executor: psycopg.AsyncConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> list[T]:
        return [
            item for items in await self.fetch_sets(executor, settings) for item in items
        ]

    async def fetch_optional(
        self,
        executor: psycopg.AsyncConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> T | None:
        conn = await _async_connection(executor)
        sets = await _read_sets(
            conn, self.sql, self.args, Behavior.SINGLE_ROW, settings
        )
        return _first(self.result_type, sets, required=False)

    async def fetch_one(
        self,
        executor: psycopg.AsyncConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> T:
        conn = await _async_connection(executor)
        sets = await _read_sets(
            conn, self.sql, self.args, Behavior.SINGLE_ROW, settings
        )
        return _first(self.result_type, sets, required=True)  # type: ignore[return-value]

    def fetch_sets_sync(
        self,
        conn: DBAPIConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> list[list[T]]:
        sets = _read_sets_sync(conn, self.sql, self.args, Behavior.DEFAULT, settings)
        return _construct_sets(self.result_type, sets)

    def fetch_all_sync(
        self,
        conn: DBAPIConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> list[T]:
        return [item for items in self.fetch_sets_sync(conn, settings) for item in items]

    def fetch_optional_sync(
        self,
        conn: DBAPIConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> T | None:
        sets = _read_sets_sync(
            conn, self.sql, self.args, Behavior.SINGLE_ROW, settings
        )
        return _first(self.result_type, sets, required=False)

    def fetch_one_sync(
        self,
        conn: DBAPIConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> T:
        sets = _read_sets_sync(
            conn, self.sql, self.args, Behavior.SINGLE_ROW, settings
        )
        return _first(self.result_type, sets, required=True)  # type: ignore[return-value]


def _first(result_type: type[T], sets: list[RowSet], required: bool) -> T | None:
    for cols, rows in sets:
        if rows:
            return _construct_dbapi_result(result_type, cols, rows[0])
    if required:
        msg = "fetch_one: query returned no rows"
        raise RuntimeError(msg)
    return None
