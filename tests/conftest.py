"""
Shared test fixtures.

The Supabase mock keeps table rows in memory across calls so that writes
can be read back, upserts honour their on_conflict keys, and failures
can be injected per table or per row.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import pytest
from typing import Any, Callable, Generator, Optional

from config.settings import Settings

# ===================
# MOCK SUPABASE CLIENT
# ===================


def _comparable(a: Any, b: Any) -> tuple[Any, Any]:
    if isinstance(a, str) or isinstance(b, str):
        return str(a), str(b)
    return a, b


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        else:
            self.count = len(self.data) if isinstance(self.data, list) else 1


class MockSupabaseQuery:
    """Chainable query builder evaluated against a MockSupabaseTable."""

    def __init__(
        self,
        table: "MockSupabaseTable",
        action: str = "select",
        payload: Any = None,
        on_conflict: Optional[str] = None,
    ):
        self._table = table
        self._action = action
        self._payload = payload
        self._on_conflict = on_conflict
        self._filters: list[Callable[[dict], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._range: Optional[tuple[int, int]] = None
        self._limit: Optional[int] = None
        self._is_single = False

    def select(self, *args, **kwargs):
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and _cmp_eq(r.get(column), value))
        return self

    def neq(self, column, value):
        self._filters.append(lambda r: not _cmp_eq(r.get(column), value))
        return self

    def gt(self, column, value):
        self._filters.append(lambda r: _cmp(r.get(column), value, lambda a, b: a > b))
        return self

    def gte(self, column, value):
        self._filters.append(lambda r: _cmp(r.get(column), value, lambda a, b: a >= b))
        return self

    def lt(self, column, value):
        self._filters.append(lambda r: _cmp(r.get(column), value, lambda a, b: a < b))
        return self

    def lte(self, column, value):
        self._filters.append(lambda r: _cmp(r.get(column), value, lambda a, b: a <= b))
        return self

    def in_(self, column, values):
        wanted = [str(v) for v in values]
        self._filters.append(lambda r: str(r.get(column)) in wanted)
        return self

    # Modifiers

    def order(self, column, desc=False, **kwargs):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._is_single = True
        return self

    def execute(self) -> MockSupabaseResponse:
        self._table.raise_if_failing()

        if self._action == "upsert":
            return MockSupabaseResponse(self._table.apply_upsert(self._payload, self._on_conflict))
        if self._action == "insert":
            return MockSupabaseResponse(self._table.apply_insert(self._payload))

        rows = [r for r in self._table.rows if all(f(r) for f in self._filters)]

        if self._action == "select":
            self._table.select_calls += 1

        if self._action == "delete":
            self._table.rows = [r for r in self._table.rows if r not in rows]
            return MockSupabaseResponse(copy.deepcopy(rows))

        if self._action == "update":
            for row in rows:
                row.update(self._payload)

        for column, desc in reversed(self._order):
            rows = sorted(rows, key=lambda r: str(r.get(column)), reverse=desc)
        if self._range:
            start, end = self._range
            rows = rows[start:end + 1]
        if self._limit is not None:
            rows = rows[:self._limit]
        if self._table.max_rows is not None:
            rows = rows[:self._table.max_rows]

        rows = copy.deepcopy(rows)
        if self._is_single:
            return MockSupabaseResponse(rows[0] if rows else None, count=1 if rows else 0)
        return MockSupabaseResponse(rows)


def _cmp_eq(a, b) -> bool:
    a, b = _comparable(a, b)
    return a == b


def _cmp(a, b, op) -> bool:
    if a is None or b is None:
        return False
    a, b = _comparable(a, b)
    return op(a, b)


class MockSupabaseTable:
    """In-memory table with failure injection."""

    def __init__(self, name: str):
        self.name = name
        self.rows: list[dict] = []
        self.fail_with: Optional[Exception] = None
        self.fail_when: Optional[Callable[[dict], bool]] = None
        self.row_error: Optional[Exception] = None
        self.upsert_calls: list[list[dict]] = []
        self.max_rows: Optional[int] = None
        self.select_calls = 0

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self, "insert", data)

    def upsert(self, data, on_conflict: Optional[str] = None, **kwargs):
        return MockSupabaseQuery(self, "upsert", data, on_conflict)

    def update(self, data):
        return MockSupabaseQuery(self, "update", data)

    def delete(self):
        return MockSupabaseQuery(self, "delete")

    def raise_if_failing(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def apply_insert(self, data) -> list[dict]:
        rows = data if isinstance(data, list) else [data]
        self.rows.extend(copy.deepcopy(rows))
        return copy.deepcopy(rows)

    def apply_upsert(self, data, on_conflict: Optional[str]) -> list[dict]:
        rows = data if isinstance(data, list) else [data]
        self.upsert_calls.append(copy.deepcopy(rows))

        # One request is one transaction: check every row before writing any
        for row in rows:
            if self.fail_when is not None and self.fail_when(row):
                raise self.row_error

        keys = [k.strip() for k in (on_conflict or "id").split(",")]
        for row in rows:
            existing = next(
                (r for r in self.rows if all(_cmp_eq(r.get(k), row.get(k)) for k in keys)),
                None
            )
            if existing is not None:
                existing.update(copy.deepcopy(row))
            else:
                self.rows.append(copy.deepcopy(row))

        return copy.deepcopy(rows)


class MockSupabaseClient:
    """Mock Supabase client whose tables persist for the whole test."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}
        self.max_rows: Optional[int] = None

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable(name)
            self._tables[name].max_rows = self.max_rows
        return self._tables[name]

    def cap_rows(self, max_rows: int) -> None:
        """Return at most max_rows rows per select, like PostgREST."""
        self.max_rows = max_rows
        for table in self._tables.values():
            table.max_rows = max_rows

    def set_table_data(self, table_name: str, data: list) -> None:
        """Configure mock data for a table."""
        self.table(table_name).rows = copy.deepcopy(data)

    def get_table_data(self, table_name: str) -> list[dict]:
        return copy.deepcopy(self.table(table_name).rows)

    def fail_table(self, table_name: str, error: Exception) -> None:
        """Every request to the table raises error."""
        self.table(table_name).fail_with = error

    def fail_rows(
        self,
        table_name: str,
        predicate: Callable[[dict], bool],
        error: Exception,
    ) -> None:
        """Upserts containing a row matching predicate raise error."""
        table = self.table(table_name)
        table.fail_when = predicate
        table.row_error = error


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "p1", "name": "Widget A", "price": 1200}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def settings() -> Settings:
    """Settings with default thresholds and best-effort ledger writes."""
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-anon-key",
        ledger_write_policy="best_effort",
    )


@pytest.fixture
def catalog_rows() -> list[dict]:
    """Small catalog used across import tests."""
    return [
        {"id": "p1", "name": "Widget A", "price": 1200, "series_code": "W", "product_code": "W-001"},
        {"id": "p2", "name": "Gizmo Deluxe", "price": 800, "series_code": "G", "product_code": "G-001"},
        {"id": "p3", "name": "【限定】抹茶ラテ", "price": None, "series_code": "M", "product_code": "M-001"},
    ]


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(mock_supabase) -> Generator:
    """
    Create FastAPI test client backed by the mock database.

    Usage:
        def test_endpoint(test_client, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            response = test_client.get("/api/imports/channels")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app
    from config.database import get_db

    app.dependency_overrides[get_db] = lambda: mock_supabase
    yield TestClient(app)
    app.dependency_overrides.clear()
