# conftest.py
from datetime import datetime, timedelta, timezone
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from estiba_dashboard.config import Settings
from estiba_dashboard.db.postgrest import RowSourceError, get_row_source
from estiba_dashboard.main import app
from estiba_dashboard.models.rows import parse_timestamp

NOW = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.isoformat()


def ago(**kwargs) -> str:
    return iso(NOW - timedelta(**kwargs))


class FakeRowSource:
    """In-memory stand-in for the BaaS with the same select/count surface."""

    def __init__(self, tables=None, fail_tables=(), fail_counts=(), fail_at_offset=None):
        self.tables = {name: list(rows) for name, rows in (tables or {}).items()}
        self.fail_tables = set(fail_tables)
        self.fail_counts = set(fail_counts)
        self.fail_at_offset = fail_at_offset or {}
        self.select_calls = []
        self.count_calls = []

    def _matching(self, table, eq, in_, gte, not_null=()):
        rows = self.tables.get(table, [])
        for column, value in (eq or {}).items():
            rows = [r for r in rows if r.get(column) == value]
        for column, values in (in_ or {}).items():
            rows = [r for r in rows if r.get(column) in values]
        for column in not_null:
            rows = [r for r in rows if r.get(column) is not None]
        for column, value in (gte or {}).items():
            rows = [r for r in rows
                    if parse_timestamp(r.get(column)) is not None and parse_timestamp(r.get(column)) >= value]
        return rows

    async def select(self, table, columns="*", *, eq=None, in_=None, gte=None, not_null=(), order=None,
                     offset=0, limit=None):
        self.select_calls.append({"table": table, "columns": columns, "offset": offset, "limit": limit})
        if table in self.fail_tables or self.fail_at_offset.get(table) == offset:
            raise RowSourceError(table, 503, "unavailable")

        rows = self._matching(table, eq, in_, gte, not_null)
        if order:
            column, descending = order
            rows = sorted(rows, key=lambda r: parse_timestamp(r.get(column)) or EPOCH, reverse=descending)
        if columns != "*":
            wanted = columns.split(",")
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        end = None if limit is None else offset + limit
        return rows[offset:end]

    async def count(self, table, *, eq=None, in_=None, gte=None, not_null=()):
        self.count_calls.append(table)
        if table in self.fail_counts:
            raise RowSourceError(table, 500, "count failed")
        return len(self._matching(table, eq, in_, gte, not_null))


@pytest.fixture
def settings():
    return Settings(_env_file=None, page_size=2, event_scan_limit=100, display_timezone="UTC")


@pytest.fixture
def users_rows():
    return [
        {"id": 1, "chapa": "A7", "nombre": "Ana", "email": "ana@estiba.es", "rol": "ADMIN",
         "created_at": ago(days=40)},
        {"id": 2, "chapa": 1234, "nombre": "Bruno", "email": "bruno@estiba.es", "created_at": ago(days=10)},
        {"id": 3, "chapa": None, "nombre": None, "email": None, "created_at": ago(days=1)},
    ]


@pytest.fixture
def subscriptions_rows():
    return [
        {"id": 10, "chapa": "A7", "estado": "active", "periodo_inicio": "2026-01-01T00:00:00+00:00",
         "periodo_fin": "2027-01-01T00:00:00+00:00", "created_at": ago(days=30)},
        {"id": 11, "chapa": "X2", "estado": "cancelled", "created_at": ago(days=20)},
        {"id": 12, "chapa": "Z9", "estado": "active", "periodo_inicio": "2026-10-01T00:00:00+00:00",
         "periodo_fin": "2026-11-01T00:00:00+00:00", "created_at": ago(days=5)},
    ]


@pytest.fixture
def fake_source(users_rows, subscriptions_rows):
    return FakeRowSource({
        "page_events": [],
        "usuarios": users_rows,
        "usuarios_premium": subscriptions_rows,
    })


@pytest_asyncio.fixture
async def async_client(fake_source):
    app.dependency_overrides[get_row_source] = lambda: fake_source
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
