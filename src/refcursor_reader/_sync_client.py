from typing import TypeVar

from ._capture import Behavior
from ._command import Settings
from ._dbapi import DBAPIConnection
from ._query import DEFAULT_SETTINGS, Query, open_reader_sync
from ._reader import DereferencingReader

T = TypeVar("T")


class SyncClient:
    def __init__(
        self, conn: DBAPIConnection, settings: Settings = DEFAULT_SETTINGS
    ) -> None:
        self._conn = conn
        self._settings = settings

    def fetch_one(self, sql: str, result_type: type[T], *args: object) -> T:
        return Query(sql, result_type, *args).fetch_one_sync(self._conn, self._settings)

    def fetch_optional(self, sql: str, result_type: type[T], *args: object) -> T | None:
        return Query(sql, result_type, *args).fetch_optional_sync(
            self._conn, self._settings
        )

    def fetch_all(self, sql: str, result_type: type[T], *args: object) -> list[T]:
        return Query(sql, result_type, *args).fetch_all_sync(self._conn, self._settings)

    def fetch_sets(
        self, sql: str, result_type: type[T], *args: object
    ) -> list[list[T]]:
        return Query(sql, result_type, *args).fetch_sets_sync(self._conn, self._settings)

    def open_reader(
        self,
        sql: str,
        *args: object,
        behavior: Behavior = Behavior.DEFAULT,
    ) -> DereferencingReader:
        return open_reader_sync(self._conn, sql, args, behavior, self._settings)
