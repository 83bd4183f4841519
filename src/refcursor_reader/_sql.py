from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CursorReference:
    """A server-side cursor handle captured from a result row."""

    name: str
    escaped: str

    @classmethod
    def capture(cls, value: object) -> CursorReference:
        name = str(value)
        # a cursor name may legitimately contain '"'
        return cls(name=name, escaped=name.replace('"', '""'))


def fetch_sql(cursor: CursorReference, fetch_size: int) -> str:
    count = "ALL" if fetch_size <= 0 else str(fetch_size)
    return f'FETCH {count} FROM "{cursor.escaped}";'


def close_sql(cursor: CursorReference) -> str:
    return f'CLOSE "{cursor.escaped}";'
