from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ._dbapi import (
        AsyncDBAPIConnection,
        AsyncDBAPICursor,
        DBAPIConnection,
        DBAPICursor,
    )

logger = logging.getLogger("refcursor_reader")

DEFAULT_FETCH_SIZE = 10_000


class Command(Protocol):
    def execute(self) -> DBAPICursor: ...

    def execute_non_query(self) -> None: ...

    async def execute_async(self) -> AsyncDBAPICursor: ...

    async def execute_non_query_async(self) -> None: ...


class CommandFactory(Protocol):
    @property
    def fetch_size(self) -> int: ...

    def create_command(self, sql: str, connection: Any) -> Command: ...


def _first_rowset(cursor: DBAPICursor | AsyncDBAPICursor) -> None:
    # "CLOSE a;FETCH 10 FROM b;" yields a command status before the rows
    while cursor.description is None and cursor.nextset():
        pass


class SQLCommand:
    """A single round trip of (possibly several) unparameterised statements."""

    def __init__(
        self,
        sql: str,
        connection: DBAPIConnection | AsyncDBAPIConnection,
    ) -> None:
        self.sql = sql
        self.connection = connection

    def execute(self) -> DBAPICursor:
        logger.debug("round trip: %s", self.sql)
        cursor = self.connection.cursor()
        try:
            cursor.execute(self.sql)
            _first_rowset(cursor)
        except Exception:
            cursor.close()
            raise
        return cursor  # type: ignore[return-value]

    def execute_non_query(self) -> None:
        logger.debug("round trip: %s", self.sql)
        cursor = self.connection.cursor()
        try:
            cursor.execute(self.sql)
        finally:
            cursor.close()

    async def execute_async(self) -> AsyncDBAPICursor:
        logger.debug("round trip: %s", self.sql)
        cursor = self.connection.cursor()
        try:
            await cursor.execute(self.sql)
            _first_rowset(cursor)
        except Exception:
            await cursor.close()
            raise
        return cursor  # type: ignore[return-value]

    async def execute_non_query_async(self) -> None:
        logger.debug("round trip: %s", self.sql)
        cursor = self.connection.cursor()
        try:
            await cursor.execute(self.sql)
        finally:
            await cursor.close()


@dataclass(frozen=True)
class Settings:
    """Dereferencing configuration.

    ``fetch_size`` rows are requested per FETCH; zero or less fetches
    each cursor whole (and closes it) in one round trip, which saves a
    round trip per cursor but holds the whole cursor in memory.
    """

    fetch_size: int = DEFAULT_FETCH_SIZE
    auto_dereference: bool = True

    def create_command(
        self,
        sql: str,
        connection: DBAPIConnection | AsyncDBAPIConnection,
    ) -> SQLCommand:
        return SQLCommand(sql, connection)
