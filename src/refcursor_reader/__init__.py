from ._async_client import AsyncClient
from ._capture import Behavior, can_dereference
from ._command import DEFAULT_FETCH_SIZE, Command, CommandFactory, Settings, SQLCommand
from ._errors import (
    DereferenceError,
    NoCursorColumnsError,
    NotSupportedError,
    OperationCancelledError,
    ReaderClosedError,
)
from ._query import Query
from ._reader import DereferencingReader
from ._sql import CursorReference, close_sql, fetch_sql
from ._sync_client import SyncClient

__all__ = [
    "DEFAULT_FETCH_SIZE",
    "AsyncClient",
    "Behavior",
    "Command",
    "CommandFactory",
    "CursorReference",
    "DereferenceError",
    "DereferencingReader",
    "NoCursorColumnsError",
    "NotSupportedError",
    "OperationCancelledError",
    "Query",
    "ReaderClosedError",
    "SQLCommand",
    "Settings",
    "SyncClient",
    "can_dereference",
    "close_sql",
    "fetch_sql",
]
