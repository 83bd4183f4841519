import asyncio


class DereferenceError(Exception):
    """Base for cursor dereferencing errors."""


class NotSupportedError(DereferenceError):
    def __init__(self, entry_point: str, mode: str | None) -> None:
        self.entry_point = entry_point
        self.mode = mode
        if mode is None:
            detail = "reader has not been initialised"
        else:
            detail = f"reader was initialised for {mode} use"
        super().__init__(f"{entry_point}() is not supported: {detail}")


class ReaderClosedError(DereferenceError):
    def __init__(self, operation: str, reason: str = "no current row") -> None:
        self.operation = operation
        super().__init__(f"{operation}: {reason}")


class OperationCancelledError(asyncio.CancelledError):
    def __init__(self, sql: str | None = None) -> None:
        self.sql = sql
        if sql is None:
            super().__init__("cancellation requested")
        else:
            super().__init__(f"cancellation requested before issuing {sql!r}")


class NoCursorColumnsError(DereferenceError):
    def __init__(self, sql: str) -> None:
        self.sql = sql
        super().__init__(f"query returned no refcursor columns: {sql!r}")
