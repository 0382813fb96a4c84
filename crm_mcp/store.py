"""
Data store boundary.

``Query`` is a plain description of a read or a write target: table, projected
columns, filter clauses, OR groups, ordering and pagination. Stores interpret
it; the gateway never talks SQL or HTTP itself.

``PostgrestStore`` speaks the Supabase REST dialect (PostgREST) over httpx
using the service-role key.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from .config import GatewaySettings
from .errors import DataStoreError

logger = logging.getLogger("crm_mcp.store")

# offset without limit pages through this many rows
DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any


@dataclass(frozen=True)
class AnyOf:
    """OR group; matches when at least one member filter matches."""

    filters: Tuple[Filter, ...]


@dataclass
class Query:
    table: str
    columns: str = "*"
    filters: List[Any] = field(default_factory=list)
    ordering: List[Tuple[str, bool]] = field(default_factory=list)
    limit_rows: Optional[int] = None
    offset_rows: Optional[int] = None

    def _add(self, column: str, op: str, value: Any) -> "Query":
        self.filters.append(Filter(column, op, value))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self._add(column, "eq", value)

    def gt(self, column: str, value: Any) -> "Query":
        return self._add(column, "gt", value)

    def gte(self, column: str, value: Any) -> "Query":
        return self._add(column, "gte", value)

    def lt(self, column: str, value: Any) -> "Query":
        return self._add(column, "lt", value)

    def lte(self, column: str, value: Any) -> "Query":
        return self._add(column, "lte", value)

    def in_(self, column: str, values: Sequence[Any]) -> "Query":
        return self._add(column, "in", tuple(values))

    def ilike(self, column: str, pattern: str) -> "Query":
        """SQL ILIKE; ``%`` and ``_`` are wildcards."""
        return self._add(column, "ilike", pattern)

    def contains(self, column: str, values: Sequence[Any]) -> "Query":
        return self._add(column, "cs", tuple(values))

    def search(self, columns: Sequence[str], text: str) -> "Query":
        pattern = f"%{text}%"
        self.filters.append(AnyOf(tuple(Filter(c, "ilike", pattern) for c in columns)))
        return self

    def order(self, column: str, ascending: bool = True) -> "Query":
        self.ordering.append((column, ascending))
        return self

    def limit(self, count: int) -> "Query":
        self.limit_rows = int(count)
        return self

    def range(self, start: int, end: int) -> "Query":
        """Inclusive row window, as in ``offset .. offset + limit - 1``."""
        self.offset_rows = int(start)
        self.limit_rows = int(end) - int(start) + 1
        return self

    def page(self, limit: Optional[int], offset: Optional[int]) -> "Query":
        if (limit is not None and limit < 0) or (offset is not None and offset < 0):
            raise ValueError(f"limit and offset must not be negative (limit={limit}, offset={offset})")
        if limit:
            self.limit(limit)
        if offset:
            self.range(offset, offset + (limit or DEFAULT_PAGE_SIZE) - 1)
        return self


class DataStore:
    """Interface every store implements. All methods raise DataStoreError on failure."""

    async def select(self, query: Query) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def maybe_single(self, query: Query) -> Optional[Dict[str, Any]]:
        rows = await self.select(query)
        if len(rows) > 1:
            raise DataStoreError(f"Expected at most one row from {query.table}, got {len(rows)}")
        return rows[0] if rows else None

    async def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def update(self, query: Query, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def delete(self, query: Query) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: Any) -> str:
    text = _literal(value)
    if any(ch in text for ch in ',.:()"\\ ') or text == "":
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def _operand(flt: Filter) -> str:
    if flt.op == "in":
        return "in.(" + ",".join(_quote(v) for v in flt.value) + ")"
    if flt.op == "cs":
        return "cs.{" + ",".join(_quote(v) for v in flt.value) + "}"
    if flt.op == "ilike":
        return "ilike." + str(flt.value).replace("%", "*")
    if flt.value is None and flt.op == "eq":
        return "is.null"
    return f"{flt.op}.{_literal(flt.value)}"


def to_postgrest_params(query: Query) -> List[Tuple[str, str]]:
    """Translate a Query into PostgREST query-string parameters."""
    params: List[Tuple[str, str]] = [("select", query.columns)]
    for item in query.filters:
        if isinstance(item, AnyOf):
            members = []
            for flt in item.filters:
                op, _, rest = _operand(flt).partition(".")
                members.append(f"{flt.column}.{op}.{_quote(rest)}")
            params.append(("or", "(" + ",".join(members) + ")"))
        else:
            params.append((item.column, _operand(item)))
    if query.ordering:
        params.append((
            "order",
            ",".join(f"{col}.{'asc' if asc else 'desc'}" for col, asc in query.ordering),
        ))
    if query.limit_rows is not None:
        params.append(("limit", str(query.limit_rows)))
    if query.offset_rows is not None:
        params.append(("offset", str(query.offset_rows)))
    return params


class PostgrestStore(DataStore):
    def __init__(self, http_client: httpx.AsyncClient, base_url: str, service_role_key: str) -> None:
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[List[Tuple[str, str]]] = None,
        payload: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            response = await self.http_client.request(
                method,
                self._url(table),
                params=params,
                content=json.dumps(payload, default=str) if payload is not None else None,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise DataStoreError(f"{method} {table} failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("message") or body.get("hint") or response.text
            except ValueError:
                message = response.text
            logger.warning(
                f"Store returned {response.status_code} for {method} {table}: {message}",
            )
            raise DataStoreError(str(message), status_code=response.status_code)
        if not response.content:
            return None
        return response.json()

    async def select(self, query: Query) -> List[Dict[str, Any]]:
        data = await self._request("GET", query.table, params=to_postgrest_params(query))
        return list(data or [])

    async def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request("POST", table, payload=values, prefer="return=representation")
        if not data:
            raise DataStoreError(f"Insert into {table} returned no row")
        return data[0] if isinstance(data, list) else data

    async def update(self, query: Query, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = [p for p in to_postgrest_params(query) if p[0] not in ("order", "limit", "offset")]
        data = await self._request("PATCH", query.table, params=params, payload=values, prefer="return=representation")
        return list(data or [])

    async def delete(self, query: Query) -> None:
        params = [p for p in to_postgrest_params(query) if p[0] not in ("select", "order", "limit", "offset")]
        await self._request("DELETE", query.table, params=params, prefer="return=minimal")

    async def aclose(self) -> None:
        await self.http_client.aclose()


def create_store(settings: GatewaySettings) -> DataStore:
    """
    Build the process-wide store. Called exactly once by the composition root.
    """
    if settings.store_backend == "memory":
        from .memory_store import InMemoryStore

        store = InMemoryStore.from_seed_file(settings.seed_file) if settings.seed_file else InMemoryStore()
        logger.info("Using in-memory data store")
        return store

    limits = settings.http_limits
    # Security: no redirects for store calls
    http_client = httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=limits.max_connections,
            max_keepalive_connections=limits.max_keepalive_connections,
        ),
        timeout=httpx.Timeout(
            connect=limits.connect_timeout,
            read=limits.read_timeout,
            write=limits.write_timeout,
            pool=limits.pool_timeout,
        ),
        follow_redirects=False,
    )
    key = settings.service_role_key or ""
    logger.info(f"Initializing PostgREST store url={settings.store_url} key_prefix={key[:8]}...")
    return PostgrestStore(http_client, settings.store_url or "", key)
