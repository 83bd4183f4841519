"""Fetch window state machine.

The machine is written once, as generators that yield the I/O they need
(``Execute``, ``Read``, ``Release``) and receive the outcome back through
``send()``. The blocking and the asyncio reader surfaces drive the same
generators, each performing the steps in its own way.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias, TypeVar

from ._sql import CursorReference, close_sql, fetch_sql

T = TypeVar("T")


@dataclass(frozen=True)
class Execute:
    """Issue a command; rows are expected back unless ``returns_rows`` is false."""

    sql: str
    returns_rows: bool = True


@dataclass(frozen=True)
class Read:
    """Read the next row of ``result``; ``None`` at the end."""

    result: Any


@dataclass(frozen=True)
class Release:
    """Close ``result``."""

    result: Any


Step: TypeAlias = Execute | Read | Release
Steps: TypeAlias = Generator[Step, Any, T]


class FetchWindow:
    def __init__(self, cursors: Sequence[CursorReference], fetch_size: int) -> None:
        self.cursors = tuple(cursors)
        self.fetch_size = fetch_size
        self.result: Any = None
        self.row: Sequence[Any] | None = None
        self._index = 0
        self._cursor: CursorReference | None = None
        self._count = 0  # rows read from the current window
        self._pending_close = ""  # CLOSE text not yet sent
        self._done = False
        self.disposed = False

    @property
    def windowed(self) -> bool:
        return self.fetch_size > 0

    @property
    def current_cursor(self) -> CursorReference | None:
        return self._cursor

    def next_cursor(self) -> Steps[bool]:
        if self.disposed:
            return False
        exhausted = self._index >= len(self.cursors)
        yield from self._close_cursor(execute_now=exhausted)
        if exhausted:
            self._done = True
            return False
        self._cursor = self.cursors[self._index]
        self._index += 1
        yield from self._fetch()
        return True

    def next_row(self) -> Steps[bool]:
        while not self._done:
            if self.result is not None:
                row = yield Read(self.result)
                if row is not None:
                    self._count += 1
                    self.row = row
                    return True
                self.row = None
                # a short window (or FETCH ALL) proves the cursor is empty
                if not self.windowed or self._count < self.fetch_size:
                    return False
            # a full window may or may not be followed by more rows
            yield from self._fetch()
        self.row = None
        return False

    def dispose(self) -> Steps[None]:
        if self.disposed:
            return
        self.disposed = True
        self._done = True
        yield from self._close_cursor()

    def _release_result(self) -> Steps[None]:
        self.row = None
        if self.result is not None:
            result, self.result = self.result, None
            yield Release(result)

    def _close_cursor(self, execute_now: bool = True) -> Steps[None]:
        """Close the current fetch result and, when windowed, the cursor.

        With ``execute_now`` false the CLOSE is left pending, to be sent
        along with the next FETCH.
        """
        yield from self._release_result()
        if self.windowed and self._cursor is not None:
            self._pending_close += close_sql(self._cursor)
            self._cursor = None
        if not execute_now or not self._pending_close:
            return
        sql, self._pending_close = self._pending_close, ""
        yield Execute(sql, returns_rows=False)

    def _fetch(self) -> Steps[None]:
        yield from self._release_result()
        if self._cursor is None:  # pragma: no cover
            msg = "no cursor to fetch from"
            raise RuntimeError(msg)
        sql = self._pending_close + fetch_sql(self._cursor, self.fetch_size)
        if not self.windowed:
            # nothing more will be fetched from it
            sql += close_sql(self._cursor)
        self.result = yield Execute(sql)
        self._pending_close = ""
        self._count = 0
