from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from ._capture import Behavior
from ._query import DEFAULT_SETTINGS, Query, _async_connection, open_reader

if TYPE_CHECKING:
    import asyncio

    import psycopg
    import sqlalchemy.ext.asyncio

    from ._command import Settings
    from ._reader import DereferencingReader

T = TypeVar("T")


class AsyncClient:
    def __init__(
        self,
        executor: psycopg.AsyncConnection
        | sqlalchemy.ext.asyncio.AsyncSession
        | sqlalchemy.ext.asyncio.AsyncConnection,
        settings: Settings = DEFAULT_SETTINGS,
    ) -> None:
        self._executor = executor
        self._settings = settings

    async def fetch_one(self, sql: str, result_type: type[T], *args: object) -> T:
        return await Query(sql, result_type, *args).fetch_one(
            self._executor, self._settings
        )

    async def fetch_optional(
        self, sql: str, result_type: type[T], *args: object
    ) -> T | None:
        return await Query(sql, result_type, *args).fetch_optional(
            self._executor, self._settings
        )

    async def fetch_all(self, sql: str, result_type: type[T], *args: object) -> list[T]:
        return await Query(sql, result_type, *args).fetch_all(
            self._executor, self._settings
        )

    async def fetch_sets(
        self, sql: str, result_type: type[T], *args: object
    ) -> list[list[T]]:
        return await Query(sql, result_type, *args).fetch_sets(
            self._executor, self._settings
        )

    async def open_reader(
        self,
        sql: str,
        *args: object,
        behavior: Behavior = Behavior.DEFAULT,
        cancel: asyncio.Event | None = None,
    ) -> DereferencingReader:
        conn = await _async_connection(self._executor)
        return await open_reader(conn, sql, args, behavior, self._settings, cancel)
