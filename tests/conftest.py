import os
import re
from dataclasses import dataclass

import psycopg
import pytest
import pytest_asyncio

INT4 = 23
TEXT = 25
REFCURSOR = 1790

DB_URL = os.environ.get("REFCURSOR_TEST_DB_URL")

_STATEMENT = re.compile(r'(FETCH|CLOSE) (?:(ALL|\d+) FROM )?"((?:[^"]|"")*)";')


class FakeDatabaseError(Exception):
    pass


def column(name, type_code):
    return (name, type_code, None, None, None, None, None)


@dataclass
class Portal:
    description: list
    rows: list
    closed: bool = False


class FakeServer:
    """Just enough of a PostgreSQL backend to FETCH from and CLOSE portals."""

    def __init__(self):
        self.portals = {}
        self.queries = {}
        self.executed = []
        self.overlapping = []
        self.on_execute = None
        self.fetchall_calls = 0
        self._live = []

    def open_portal(self, name, rows, columns=(("id", INT4),)):
        self.portals[name] = Portal([column(*c) for c in columns], list(rows))

    def add_query(self, sql, columns, rows):
        self.queries[sql] = ([column(*c) for c in columns], [tuple(r) for r in rows])

    def cursor_grid(self, grid, columns=None):
        sql = f"SELECT /* {len(self.queries)} */ cursors()"
        if columns is None:
            columns = [(f"c{i}", REFCURSOR) for i in range(len(grid[0]))]
        self.add_query(sql, columns, grid)
        return sql

    def fetches(self, name=None):
        quoted = None if name is None else '"{}"'.format(name.replace('"', '""'))
        return [
            m.group(0)
            for sql in self.executed
            for m in _STATEMENT.finditer(sql)
            if m.group(1) == "FETCH" and (quoted is None or m.group(0).endswith(quoted + ";"))
        ]

    def run(self, sql):
        if any(not cursor.closed for cursor in self._live):
            self.overlapping.append(sql)
        self.executed.append(sql)
        if self.on_execute is not None:
            self.on_execute(sql)
        if sql in self.queries:
            description, rows = self.queries[sql]
            return [(description, list(rows))]
        statements = list(_STATEMENT.finditer(sql))
        if "".join(m.group(0) for m in statements) != sql:
            msg = f"syntax error at or near {sql!r}"
            raise FakeDatabaseError(msg)
        # a failing statement aborts the whole command
        closing = set()
        for match in statements:
            name = match.group(3).replace('""', '"')
            portal = self.portals.get(name)
            if portal is None or portal.closed or name in closing:
                msg = f'cursor "{name}" does not exist'
                raise FakeDatabaseError(msg)
            if match.group(1) == "CLOSE":
                closing.add(name)
        results = []
        for match in statements:
            portal = self.portals[match.group(3).replace('""', '"')]
            if match.group(1) == "CLOSE":
                portal.closed = True
                results.append((None, []))
                continue
            count = len(portal.rows) if match.group(2) == "ALL" else int(match.group(2))
            rows, portal.rows = portal.rows[:count], portal.rows[count:]
            results.append((portal.description, rows))
        return results

    def track(self, cursor):
        self._live.append(cursor)


class FakeCursor:
    def __init__(self, server):
        self.server = server
        self.closed = False
        self.description = None
        self._results = []
        self._rows = []
        self._pos = 0

    @property
    def rowcount(self):
        return len(self._rows)

    def execute(self, sql, params=None):
        self._results = self.server.run(sql)
        self._select(0)
        self.server.track(self)

    def _select(self, pos):
        self._pos = pos
        self.description, rows = self._results[pos]
        self._rows = list(rows)

    def nextset(self):
        if self._pos + 1 >= len(self._results):
            return None
        self._select(self._pos + 1)
        return True

    def fetchone(self):
        if self.closed:
            msg = "the cursor is closed"
            raise FakeDatabaseError(msg)
        if self.description is None:
            msg = "the last operation didn't produce a result"
            raise FakeDatabaseError(msg)
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        self.server.fetchall_calls += 1
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, server):
        self.server = server
        self.cursors = []

    def cursor(self):
        cursor = FakeCursor(self.server)
        self.cursors.append(cursor)
        return cursor

    def result_of(self, sql):
        cursor = self.cursor()
        cursor.execute(sql)
        return cursor


class AsyncFakeCursor:
    def __init__(self, server):
        self.sync = FakeCursor(server)

    @property
    def description(self):
        return self.sync.description

    @property
    def rowcount(self):
        return self.sync.rowcount

    @property
    def closed(self):
        return self.sync.closed

    async def execute(self, sql, params=None):
        self.sync.execute(sql, params)

    async def fetchone(self):
        return self.sync.fetchone()

    async def fetchall(self):
        return self.sync.fetchall()

    def nextset(self):
        return self.sync.nextset()

    async def close(self):
        self.sync.close()


class AsyncFakeConnection:
    def __init__(self, server):
        self.server = server
        self.cursors = []

    def cursor(self):
        cursor = AsyncFakeCursor(self.server)
        self.cursors.append(cursor)
        return cursor

    async def result_of(self, sql):
        cursor = self.cursor()
        await cursor.execute(sql)
        return cursor


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def conn(server):
    return FakeConnection(server)


@pytest.fixture
def async_conn(server):
    return AsyncFakeConnection(server)


@pytest.fixture
def pg_conn():
    if DB_URL is None:
        pytest.skip("REFCURSOR_TEST_DB_URL is not set")
    conn = psycopg.connect(DB_URL)
    yield conn
    conn.rollback()
    conn.close()


@pytest_asyncio.fixture
async def async_pg_conn():
    if DB_URL is None:
        pytest.skip("REFCURSOR_TEST_DB_URL is not set")
    conn = await psycopg.AsyncConnection.connect(DB_URL)
    yield conn
    await conn.rollback()
    await conn.close()
