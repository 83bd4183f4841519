from __future__ import annotations

import asyncio
import datetime
import decimal
import logging
import uuid
from collections.abc import AsyncIterator, Iterator, Sequence
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar

from ._capture import Behavior, capture_cursors
from ._command import CommandFactory, Settings
from ._errors import NotSupportedError, OperationCancelledError, ReaderClosedError
from ._types import python_type, type_name
from ._window import Execute, FetchWindow, Read, Release, Step, Steps

if TYPE_CHECKING:
    from ._dbapi import (
        AsyncDBAPIConnection,
        AsyncDBAPICursor,
        DBAPIConnection,
        DBAPICursor,
    )

logger = logging.getLogger("refcursor_reader")

T = TypeVar("T")

_BLOCKING = "blocking"
_ASYNCIO = "asyncio"


class DereferencingReader:
    """Forward-only reader over the rows of every cursor in a result.

    ``result`` is a query result with at least one refcursor column (see
    ``can_dereference``). The reader takes ownership of it on ``init()``
    or ``init_async()``, collects the cursor names and closes it, then
    FETCHes the cursors one after the other on ``connection``, which must
    stay inside the transaction the cursors were opened in.

    Rows are read with ``read()`` until it returns False, then
    ``next_result()`` moves on to the next cursor, as with a
    multi-result DB reader. The asyncio entry points carry an
    ``_async`` suffix; a reader only serves the flavour it was
    initialised with.
    """

    def __init__(
        self,
        result: DBAPICursor | AsyncDBAPICursor,
        behavior: Behavior,
        connection: DBAPIConnection | AsyncDBAPIConnection,
        factory: CommandFactory | None = None,
    ) -> None:
        self._original: Any = result
        self._behavior = behavior
        self._connection = connection
        self._factory: CommandFactory = factory if factory is not None else Settings()
        self._window = FetchWindow((), self._factory.fetch_size)
        self._mode: str | None = None
        self._cancel: asyncio.Event | None = None

    @classmethod
    def open(
        cls,
        result: DBAPICursor,
        connection: DBAPIConnection,
        *,
        behavior: Behavior = Behavior.DEFAULT,
        factory: CommandFactory | None = None,
    ) -> DereferencingReader:
        reader = cls(result, behavior, connection, factory)
        reader.init()
        return reader

    @classmethod
    async def open_async(
        cls,
        result: AsyncDBAPICursor,
        connection: AsyncDBAPIConnection,
        *,
        behavior: Behavior = Behavior.DEFAULT,
        factory: CommandFactory | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DereferencingReader:
        reader = cls(result, behavior, connection, factory)
        await reader.init_async(cancel)
        return reader

    # blocking surface

    def init(self) -> None:
        self._enter_mode(_BLOCKING, "init")
        original, self._original = self._original, None
        try:
            cursors = self._run(capture_cursors(original, self._behavior))
        finally:
            original.close()
        self._window = FetchWindow(cursors, self._factory.fetch_size)
        self._run(self._window.next_cursor())

    def read(self) -> bool:
        self._require(_BLOCKING, "read")
        return self._run(self._window.next_row())

    def next_result(self) -> bool:
        self._require(_BLOCKING, "next_result")
        return self._run(self._window.next_cursor())

    def close(self) -> None:
        if self._mode == _ASYNCIO:
            raise NotSupportedError("close", self._mode)
        if self._original is not None:
            original, self._original = self._original, None
            original.close()
        self._run(self._window.dispose())

    def __enter__(self) -> DereferencingReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.close()
            return
        try:
            self.close()
        except Exception:
            logger.warning("failed to close cursor after error", exc_info=True)

    def __iter__(self) -> Iterator[Sequence[Any]]:
        while True:
            while self.read():
                yield self.current_row
            if not self.next_result():
                return

    def _run(self, steps: Steps[T]) -> T:
        outcome = None
        while True:
            try:
                step = steps.send(outcome)
            except StopIteration as stop:
                return stop.value  # type: ignore[no-any-return]
            outcome = self._perform(step)

    def _perform(self, step: Step) -> Any:
        match step:
            case Read(result=result):
                return result.fetchone()
            case Release(result=result):
                result.close()
                return None
            case Execute(sql=sql, returns_rows=returns_rows):
                command = self._factory.create_command(sql, self._connection)
                if returns_rows:
                    return command.execute()
                command.execute_non_query()
                return None

    # asyncio surface

    async def init_async(self, cancel: asyncio.Event | None = None) -> None:
        self._enter_mode(_ASYNCIO, "init_async")
        self._cancel = cancel
        original, self._original = self._original, None
        try:
            cursors = await self._run_async(capture_cursors(original, self._behavior))
        finally:
            await original.close()
        self._window = FetchWindow(cursors, self._factory.fetch_size)
        await self._run_async(self._window.next_cursor())

    async def read_async(self) -> bool:
        self._require(_ASYNCIO, "read_async")
        # psycopg does not abort an in-flight fetch when the task is cancelled
        self._check_cancelled()
        return await self._run_async(self._window.next_row())

    async def next_result_async(self) -> bool:
        self._require(_ASYNCIO, "next_result_async")
        return await self._run_async(self._window.next_cursor())

    async def close_async(self) -> None:
        if self._mode == _BLOCKING:
            raise NotSupportedError("close_async", self._mode)
        if self._original is not None:
            original, self._original = self._original, None
            await original.close()
        # cleanup runs even once cancellation has been requested
        await self._run_async(self._window.dispose(), guarded=False)

    async def __aenter__(self) -> DereferencingReader:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            await self.close_async()
            return
        try:
            await self.close_async()
        except Exception:
            logger.warning("failed to close cursor after error", exc_info=True)

    async def __aiter__(self) -> AsyncIterator[Sequence[Any]]:
        while True:
            while await self.read_async():
                yield self.current_row
            if not await self.next_result_async():
                return

    async def _run_async(self, steps: Steps[T], guarded: bool = True) -> T:
        outcome = None
        while True:
            try:
                step = steps.send(outcome)
            except StopIteration as stop:
                return stop.value  # type: ignore[no-any-return]
            outcome = await self._perform_async(step, guarded)

    async def _perform_async(self, step: Step, guarded: bool) -> Any:
        match step:
            case Read(result=result):
                return await result.fetchone()
            case Release(result=result):
                await result.close()
                return None
            case Execute(sql=sql, returns_rows=returns_rows):
                if guarded:
                    self._check_cancelled(sql)
                command = self._factory.create_command(sql, self._connection)
                if returns_rows:
                    return await command.execute_async()
                await command.execute_non_query_async()
                return None

    def _check_cancelled(self, sql: str | None = None) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise OperationCancelledError(sql)

    def _enter_mode(self, mode: str, entry_point: str) -> None:
        if self._window.disposed:
            raise ReaderClosedError(entry_point, "reader is closed")
        if self._mode is not None:
            raise NotSupportedError(entry_point, self._mode)
        self._mode = mode

    def _require(self, mode: str, entry_point: str) -> None:
        if self._mode != mode:
            raise NotSupportedError(entry_point, self._mode)

    # column access, on the current row of the current cursor

    @property
    def is_closed(self) -> bool:
        return self._window.disposed

    @property
    def cursor_names(self) -> tuple[str, ...]:
        return tuple(cursor.name for cursor in self._window.cursors)

    @property
    def description(self) -> Sequence[Sequence[Any]] | None:
        result = self._window.result
        if result is None:
            return None
        return result.description  # type: ignore[no-any-return]

    @property
    def field_count(self) -> int:
        description = self.description
        return 0 if description is None else len(description)

    @property
    def current_row(self) -> Sequence[Any]:
        row = self._window.row
        if row is None:
            raise ReaderClosedError("current_row")
        return row

    def _column(self, i: int) -> Sequence[Any]:
        description = self.description
        if description is None:
            raise ReaderClosedError("describe column")
        return description[i]

    def get_name(self, i: int) -> str:
        return str(self._column(i)[0])

    def get_ordinal(self, name: str) -> int:
        for i in range(self.field_count):
            if self.get_name(i) == name:
                return i
        raise KeyError(name)

    def get_data_type_name(self, i: int) -> str:
        return type_name(self._column(i)[1])

    def get_field_type(self, i: int) -> type:
        return python_type(self._column(i)[1])

    def get_value(self, i: int) -> Any:
        return self.current_row[i]

    def get_values(self) -> tuple[Any, ...]:
        return tuple(self.current_row)

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, str):
            key = self.get_ordinal(key)
        return self.get_value(key)

    def is_null(self, i: int) -> bool:
        return self.get_value(i) is None

    def _get_typed(self, i: int, expected: type[T]) -> T:
        value = self.get_value(i)
        # bool is an int subclass
        wrong_bool = isinstance(value, bool) and expected is not bool
        if wrong_bool or not isinstance(value, expected):
            msg = (
                f"column {self.get_name(i)!r}: expected {expected.__name__},"
                f" got {type(value).__name__}"
            )
            raise TypeError(msg)
        return value

    def get_bool(self, i: int) -> bool:
        return self._get_typed(i, bool)

    def get_int(self, i: int) -> int:
        return self._get_typed(i, int)

    def get_float(self, i: int) -> float:
        return self._get_typed(i, float)

    def get_decimal(self, i: int) -> decimal.Decimal:
        return self._get_typed(i, decimal.Decimal)

    def get_str(self, i: int) -> str:
        return self._get_typed(i, str)

    def get_bytes(self, i: int) -> bytes:
        return self._get_typed(i, bytes)

    def get_date(self, i: int) -> datetime.date:
        return self._get_typed(i, datetime.date)

    def get_time(self, i: int) -> datetime.time:
        return self._get_typed(i, datetime.time)

    def get_datetime(self, i: int) -> datetime.datetime:
        return self._get_typed(i, datetime.datetime)

    def get_timedelta(self, i: int) -> datetime.timedelta:
        return self._get_typed(i, datetime.timedelta)

    def get_uuid(self, i: int) -> uuid.UUID:
        return self._get_typed(i, uuid.UUID)
