from __future__ import annotations

import copy
import re
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml

from .errors import DataStoreError
from .store import AnyOf, DataStore, Filter, Query


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _like_to_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    for ch in pattern:
        if ch in "%*":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _compare(op: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    try:
        if op == "gt":
            return left > right
        if op == "gte":
            return left >= right
        if op == "lt":
            return left < right
        return left <= right
    except TypeError:
        return False


def _matches_filter(row: Dict[str, Any], flt: Filter) -> bool:
    value = row.get(flt.column)
    if flt.op == "eq":
        return value is None if flt.value is None else value == flt.value
    if flt.op in ("gt", "gte", "lt", "lte"):
        return _compare(flt.op, value, flt.value)
    if flt.op == "in":
        return value is not None and value in flt.value
    if flt.op == "ilike":
        return value is not None and _like_to_regex(str(flt.value)).fullmatch(str(value)) is not None
    if flt.op == "cs":
        return isinstance(value, list) and all(v in value for v in flt.value)
    raise DataStoreError(f"Unsupported filter operator '{flt.op}'")


def matches(row: Dict[str, Any], filters: Iterable[Any]) -> bool:
    for item in filters:
        if isinstance(item, AnyOf):
            if not any(_matches_filter(row, flt) for flt in item.filters):
                return False
        elif not _matches_filter(row, item):
            return False
    return True


def _sort(rows: List[Dict[str, Any]], ordering: List[Any]) -> List[Dict[str, Any]]:
    # PostgreSQL defaults: NULLS LAST ascending, NULLS FIRST descending
    result = list(rows)
    for column, ascending in reversed(ordering):
        result.sort(
            key=lambda r: (r.get(column) is None, r.get(column)),
            reverse=not ascending,
        )
    return result


class InMemoryStore(DataStore):
    """
    Process-local store with the same query semantics as PostgREST.

    Used for local development (``data_store.backend: memory``) and tests.
    """

    def __init__(
        self,
        tables: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._clock = clock
        self._last_created: Optional[datetime] = None
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        for table, rows in (tables or {}).items():
            for row in rows:
                self._seed(table, row)

    @classmethod
    def from_seed_file(cls, path: str) -> "InMemoryStore":
        seed_path = Path(path)
        if not seed_path.exists():
            raise FileNotFoundError(f"Seed file not found at {seed_path}")
        with seed_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError("Seed file root must map table names to row lists")
        return cls(tables=data)

    def _next_timestamp(self) -> str:
        now = self._clock()
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now.isoformat()

    def _seed(self, table: str, row: Dict[str, Any]) -> None:
        record = copy.deepcopy(row)
        record.setdefault("id", str(uuid.uuid4()))
        if not record.get("created_at"):
            record["created_at"] = self._next_timestamp()
        self.tables.setdefault(table, []).append(record)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    @staticmethod
    def _project(row: Dict[str, Any], columns: str) -> Dict[str, Any]:
        if columns.strip() == "*":
            return copy.deepcopy(row)
        wanted = [c.strip() for c in columns.split(",") if c.strip()]
        return {c: copy.deepcopy(row.get(c)) for c in wanted}

    async def select(self, query: Query) -> List[Dict[str, Any]]:
        found = [r for r in self.rows(query.table) if matches(r, query.filters)]
        found = _sort(found, query.ordering)
        start = query.offset_rows or 0
        end = start + query.limit_rows if query.limit_rows is not None else None
        return [self._project(r, query.columns) for r in found[start:end]]

    async def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        record = copy.deepcopy(values)
        record.setdefault("id", str(uuid.uuid4()))
        if any(r["id"] == record["id"] for r in self.rows(table)):
            raise DataStoreError(f"duplicate key value violates unique constraint \"{table}_pkey\"")
        record["created_at"] = self._next_timestamp()
        record.setdefault("updated_at", record["created_at"])
        self.rows(table).append(record)
        return copy.deepcopy(record)

    async def update(self, query: Query, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        changed = []
        for row in self.rows(query.table):
            if matches(row, query.filters):
                row.update(copy.deepcopy(values))
                changed.append(copy.deepcopy(row))
        return changed

    async def delete(self, query: Query) -> None:
        kept = [r for r in self.rows(query.table) if not matches(r, query.filters)]
        self.tables[query.table] = kept
