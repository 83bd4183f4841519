from collections.abc import Mapping, Sequence
from typing import Any, Protocol


# Minimal PEP 249 (DB-API 2.0) protocols.
# Based on _typeshed.dbapi:
# https://github.com/python/typeshed/blob/main/stdlib/_typeshed/dbapi.pyi
class DBAPICursor(Protocol):
    @property
    def description(self) -> Sequence[Sequence[Any]] | None: ...
    @property
    def rowcount(self) -> int: ...
    def execute(
        self,
        operation: str,
        parameters: Sequence[Any] | Mapping[str, Any] = ...,
        /,
    ) -> object: ...
    def fetchone(self) -> Sequence[Any] | None: ...
    def fetchall(self) -> Sequence[Sequence[Any]]: ...
    def nextset(self) -> bool | None: ...
    def close(self) -> None: ...


class DBAPIConnection(Protocol):
    def cursor(self) -> DBAPICursor: ...


# The asyncio flavour, shaped after psycopg.AsyncCursor: I/O methods are
# coroutines, nextset() and description are not.
class AsyncDBAPICursor(Protocol):
    @property
    def description(self) -> Sequence[Sequence[Any]] | None: ...
    @property
    def rowcount(self) -> int: ...
    async def execute(
        self,
        operation: str,
        parameters: Sequence[Any] | Mapping[str, Any] = ...,
        /,
    ) -> object: ...
    async def fetchone(self) -> Sequence[Any] | None: ...
    async def fetchall(self) -> Sequence[Sequence[Any]]: ...
    def nextset(self) -> bool | None: ...
    async def close(self) -> None: ...


class AsyncDBAPIConnection(Protocol):
    def cursor(self) -> AsyncDBAPICursor: ...
