"""In-memory stand-in for the supabase-py query builder used by the board"""
from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from supabase import PostgrestAPIError

BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@dataclass
class FakeResponse:
    data: list


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table = table
        self.operation = "select"
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.ordering = None

    def select(self, columns: str = "*") -> "FakeQuery":
        self.operation = "select"
        self.columns = columns
        return self

    def insert(self, payload) -> "FakeQuery":
        self.operation = "insert"
        self.payload = payload
        return self

    def delete(self) -> "FakeQuery":
        self.operation = "delete"
        return self

    def eq(self, column: str, value) -> "FakeQuery":
        self.filters.append(lambda row: str(row.get(column)) == str(value))
        return self

    def in_(self, column: str, values) -> "FakeQuery":
        wanted = {str(v) for v in values}
        self.filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.ordering = (column, desc)
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self.filters)

    def _project(self, row: dict) -> dict:
        if self.columns.strip() == "*":
            return dict(row)
        names = [name.strip() for name in self.columns.split(",")]
        return {name: row.get(name) for name in names}

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.operation))
        if (self.table, self.operation) in self.db.failures:
            raise PostgrestAPIError({"message": f"{self.operation} on {self.table} failed", "code": "500"})

        rows = self.db.tables.setdefault(self.table, [])
        if self.operation == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for payload in payloads:
                row = dict(payload)
                row.setdefault("id", str(next(self.db.ids)))
                row.setdefault("created_at", self.db.next_timestamp())
                rows.append(row)
                created.append(dict(row))
            return FakeResponse(created)

        if self.operation == "delete":
            removed = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(removed)

        selected = [row for row in rows if self._matches(row)]
        if self.ordering:
            column, desc = self.ordering
            selected.sort(key=lambda row: row.get(column) or "", reverse=desc)
        return FakeResponse([self._project(row) for row in selected])


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.failures: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []
        self.ids = itertools.count(1)
        self._ticks = itertools.count()

    def next_timestamp(self) -> str:
        return (BASE_TIME + timedelta(minutes=next(self._ticks))).isoformat()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, operation: str) -> None:
        self.failures.add((table, operation))

    def heal(self) -> None:
        self.failures.clear()

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])
