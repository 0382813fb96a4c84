"""
Read-only resource resolution.

URIs take two shapes per domain:

    <scheme>://<view>             collection view or ``statistics``
    <scheme>://<singular>/<id>    one record by primary key

Errors are raised, not enveloped; the MCP transport turns them into protocol
errors. This path performs no permission check.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from .errors import NotFoundError, UnknownResourceError
from .statistics import Window, aggregate
from .store import DataStore, Query

if TYPE_CHECKING:
    from .domain import DomainConfig

logger = logging.getLogger("crm_mcp.resources")

MIME_TYPE = "application/json"
STATISTICS_VIEW = "statistics"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class View:
    slug: str
    name: str
    description: str
    build: Callable[[Query, Window], Query]
    lookback_days: Optional[int] = None
    # (column, labels lowest first): highest rank first, store order kept within a rank
    rank: Optional[Tuple[str, Tuple[str, ...]]] = None


@dataclass(frozen=True)
class ResourceDescriptor:
    uri: str
    name: str
    description: str
    mime_type: str = MIME_TYPE


def dump_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


class ResourceResolver:
    def __init__(
        self,
        domain: "DomainConfig",
        store: DataStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.domain = domain
        self.store = store
        self.clock = clock
        self._views: Dict[str, View] = {view.slug: view for view in domain.views}

    def list_resources(self) -> List[ResourceDescriptor]:
        scheme = self.domain.scheme
        listed = [
            ResourceDescriptor(uri=f"{scheme}://{view.slug}", name=view.name, description=view.description)
            for view in self.domain.views
        ]
        listed.append(ResourceDescriptor(
            uri=f"{scheme}://{STATISTICS_VIEW}",
            name=f"{self.domain.title} Statistics",
            description=f"Aggregate statistics about {self.domain.plural}",
        ))
        return listed

    def list_templates(self) -> List[ResourceDescriptor]:
        return [ResourceDescriptor(
            uri=self.domain.record_template,
            name=f"Individual {self.domain.title}",
            description=f"Get details of a specific {self.domain.singular} by ID",
        )]

    async def resolve(self, uri: str) -> Dict[str, Any]:
        logger.info(f"Reading resource {uri}", extra={"domain": self.domain.scheme})
        prefix = f"{self.domain.scheme}://"
        if not uri.startswith(prefix):
            raise UnknownResourceError(uri)
        path = uri[len(prefix):].rstrip("/")

        record_prefix = f"{self.domain.singular}/"
        if path == STATISTICS_VIEW:
            payload: Any = await self.statistics()
        elif path.startswith(record_prefix) and len(path) > len(record_prefix):
            payload = await self.record(path[len(record_prefix):])
        elif path in self._views:
            rows = await self.collection(path)
            payload = {self.domain.plural: rows, "count": len(rows)}
        else:
            raise UnknownResourceError(uri)
        return {"contents": [{"uri": uri, "mimeType": MIME_TYPE, "text": dump_json(payload)}]}

    async def collection(self, slug: str) -> List[Dict[str, Any]]:
        view = self._views.get(slug)
        if view is None:
            raise UnknownResourceError(f"{self.domain.scheme}://{slug}")
        lookback = [view.lookback_days] if view.lookback_days is not None else []
        query = view.build(Query(self.domain.table), Window.at(self.clock(), lookback))
        if not any(column == "created_at" for column, _ in query.ordering):
            query.order("created_at", ascending=False)
        rows = await self.store.select(query)
        if view.rank is not None:
            column, labels = view.rank
            ranks = {label: position for position, label in enumerate(labels)}
            rows.sort(key=lambda row: ranks.get(row.get(column), -1), reverse=True)
        return rows

    async def record(self, record_id: str) -> Dict[str, Any]:
        row = await self.store.maybe_single(Query(self.domain.table).eq("id", record_id))
        if row is None:
            raise NotFoundError(self.domain.title, record_id)
        return row

    async def find(self, column: str, value: Any) -> Optional[Dict[str, Any]]:
        """First record whose ``column`` equals ``value``, or None."""
        rows = await self.store.select(Query(self.domain.table).eq(column, value).limit(1))
        return rows[0] if rows else None

    async def statistics(self) -> Dict[str, Any]:
        spec = self.domain.statistics
        rows = await self.store.select(Query(self.domain.table, columns=spec.projection))
        return aggregate(rows, spec, self.clock())
