"""
Tool registry and dispatcher.

Each domain declares its tools as ``ToolSpec`` objects. A spec carries the
JSON schema advertised to clients and a pydantic model generated from the same
field list, which the dispatcher uses as the authoritative argument check.

The dispatcher is the single place where errors become envelopes:

    {"success": True, "data": ...}
    {"success": False, "error": {"code": "TOOL_ERROR", "message": ..., "details": ...}}
"""
from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from .errors import GatewayError, NotFoundError, UnknownOperationError, ValidationError
from .observability import AuditLogger, InMemoryMetrics
from .permissions import PermissionValidator
from .store import DataStore, Query

if TYPE_CHECKING:
    from .domain import DomainConfig

logger = logging.getLogger("crm_mcp.tools")

ERROR_CODE = "TOOL_ERROR"

KIND_ACTIONS = {
    "query": "view",
    "create": "create",
    "update": "edit",
    "delete": "delete",
}

IDENTITY_PROPERTIES = {
    "agent_id": {"type": "string", "description": "Calling agent ID (falls back to the server's AGENT_ID)"},
    "agent_name": {"type": "string", "description": "Calling agent display name"},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str
    description: str
    enum: Tuple[str, ...] = ()
    default: Any = None
    # query tools only: eq | gte | lte | ilike | cs | search | page
    filter: Optional[str] = None
    column: Optional[str] = None
    minimum: Optional[int] = None

    @property
    def target(self) -> str:
        return self.column or self.name

    def annotation(self) -> Any:
        if self.enum:
            base: Any = Literal[self.enum]
        elif self.type == "number":
            base = Union[int, float]
        elif self.type == "integer":
            base = int
        elif self.type == "array":
            base = List[str]
        elif self.type == "boolean":
            base = bool
        else:
            base = str
        if self.minimum is not None:
            return Annotated[base, Field(ge=self.minimum)]
        return base

    def json_schema(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.type == "array":
            prop["items"] = {"type": "string"}
        if self.enum:
            prop["enum"] = list(self.enum)
        if self.default is not None:
            prop["default"] = self.default
        if self.minimum is not None:
            prop["minimum"] = self.minimum
        return prop


@dataclass
class ToolSpec:
    name: str
    description: str
    kind: str
    fields: Tuple[FieldSpec, ...]
    required: Tuple[str, ...] = ()
    model: Type[BaseModel] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.kind not in KIND_ACTIONS:
            raise ValueError(f"Unknown tool kind '{self.kind}' for {self.name}")
        definitions: Dict[str, Any] = {}
        for spec in self.fields:
            if spec.name in self.required:
                definitions[spec.name] = (spec.annotation(), ...)
            else:
                definitions[spec.name] = (Optional[spec.annotation()], None)
        self.model = create_model(
            f"{self.name}_arguments",
            __config__=ConfigDict(extra="ignore"),
            **definitions,
        )

    @property
    def action(self) -> str:
        return KIND_ACTIONS[self.kind]

    def input_schema(self) -> Dict[str, Any]:
        properties = {spec.name: spec.json_schema() for spec in self.fields}
        properties.update(IDENTITY_PROPERTIES)
        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if self.required:
            schema["required"] = list(self.required)
        return schema

    def defaults(self) -> Dict[str, Any]:
        return {spec.name: spec.default for spec in self.fields if spec.default is not None}

    def parse(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate and return only the fields the caller actually supplied.

        Unknown argument names are dropped, with a warning naming them.
        """
        unknown = sorted(set(arguments) - set(self.model.model_fields))
        if unknown:
            logger.warning(
                f"Ignoring unknown argument(s) for {self.name}: {', '.join(unknown)}",
                extra={"tool": self.name},
            )
        try:
            parsed = self.model.model_validate(arguments)
        except PydanticValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ValidationError(f"Invalid arguments for {self.name}: {problems}", exc.errors()) from exc
        return parsed.model_dump(exclude_unset=True)


def paging_fields(plural: str) -> Tuple[FieldSpec, ...]:
    return (
        FieldSpec(
            "limit", "integer", f"Maximum number of {plural} to return (default: 100)",
            filter="page", minimum=1,
        ),
        FieldSpec("offset", "integer", f"Number of {plural} to skip (for pagination)", filter="page", minimum=0),
    )


def crud_tools(
    singular: str,
    plural: str,
    filters: Tuple[FieldSpec, ...],
    writable: Tuple[FieldSpec, ...],
    create_required: Tuple[str, ...],
    update_only: Tuple[FieldSpec, ...] = (),
    query_description: Optional[str] = None,
) -> Tuple[ToolSpec, ...]:
    """The four tools every domain exposes: get, create, update, delete."""
    id_field = FieldSpec("id", "string", f"{singular.capitalize()} ID")
    update_fields = tuple(dataclasses.replace(f, default=None) for f in writable) + update_only
    return (
        ToolSpec(
            name=f"get_{plural}",
            description=query_description or f"Retrieve {plural} with advanced filtering and search capabilities",
            kind="query",
            fields=filters,
        ),
        ToolSpec(
            name=f"create_{singular}",
            description=f"Create a new {singular}",
            kind="create",
            fields=writable,
            required=create_required,
        ),
        ToolSpec(
            name=f"update_{singular}",
            description=f"Update an existing {singular}",
            kind="update",
            fields=(id_field,) + update_fields,
            required=("id",),
        ),
        ToolSpec(
            name=f"delete_{singular}",
            description=f"Delete a {singular}",
            kind="delete",
            fields=(dataclasses.replace(id_field, description=f"{singular.capitalize()} ID to delete"),),
            required=("id",),
        ),
    )


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == ()


class ToolDispatcher:
    def __init__(
        self,
        domain: "DomainConfig",
        store: DataStore,
        audit: AuditLogger,
        metrics: Optional[InMemoryMetrics] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.domain = domain
        self.store = store
        self.audit = audit
        self.metrics = metrics or InMemoryMetrics()
        self.clock = clock
        self._tools: Dict[str, ToolSpec] = {tool.name: tool for tool in domain.tools}

    def list_tools(self) -> List[ToolSpec]:
        return list(self._tools.values())

    async def dispatch(
        self,
        tool_name: str,
        arguments: Optional[Dict[str, Any]],
        agent_id: str,
        agent_name: str,
    ) -> Dict[str, Any]:
        args = dict(arguments or {})
        log_extra = {"domain": self.domain.scheme, "tool": tool_name, "agent": agent_id}
        logger.info("Tool called", extra=log_extra)
        start = time.perf_counter()

        try:
            tool = self._tools.get(tool_name)
            if tool is None:
                raise UnknownOperationError(tool_name)
            await PermissionValidator(self.store, agent_id).validate_or_raise(self.domain.module, tool.action)
            parsed = tool.parse(args)
            handler = getattr(self, f"_run_{tool.kind}")
            data, details = await handler(tool, parsed)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000.0
            self.metrics.record(self.domain.scheme, tool_name, duration_ms, error=True)
            logger.error(
                f"Tool execution failed: {exc}",
                extra={**log_extra, "duration_ms": duration_ms},
                exc_info=not isinstance(exc, GatewayError),
            )
            await self.audit.record(agent_id, agent_name, tool_name, "Error", {"args": args}, str(exc))
            return {
                "success": False,
                "error": {
                    "code": ERROR_CODE,
                    "message": str(exc),
                    "details": {"name": tool_name, "args": args, "kind": type(exc).__name__},
                },
            }

        duration_ms = (time.perf_counter() - start) * 1000.0
        self.metrics.record(self.domain.scheme, tool_name, duration_ms, error=False)
        logger.info("Tool call succeeded", extra={**log_extra, "duration_ms": duration_ms})
        await self.audit.record(agent_id, agent_name, tool_name, "Success", details)
        return {"success": True, "data": data}

    async def _run_query(self, tool: ToolSpec, args: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        domain = self.domain
        query = Query(domain.table)
        for spec in tool.fields:
            value = args.get(spec.name)
            if spec.filter in (None, "page") or _is_blank(value):
                continue
            if spec.filter == "search":
                query.search(domain.search_columns, value)
            elif spec.filter == "eq":
                query.eq(spec.target, value)
            elif spec.filter == "gte":
                query.gte(spec.target, value)
            elif spec.filter == "lte":
                query.lte(spec.target, value)
            elif spec.filter == "ilike":
                query.ilike(spec.target, value)
            elif spec.filter == "cs":
                query.contains(spec.target, value)
            else:
                raise ValueError(f"Unsupported filter '{spec.filter}' on {tool.name}.{spec.name}")
        query.order("created_at", ascending=False)
        query.page(args.get("limit"), args.get("offset"))

        rows = await self.store.select(query)
        data = {domain.plural: rows, "count": len(rows)}
        return data, {"filters": args, "count": len(rows)}

    async def _run_create(self, tool: ToolSpec, args: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        domain = self.domain
        values = dict(args)
        for name, default in tool.defaults().items():
            if _is_blank(values.get(name)):
                values[name] = default
        row = await self.store.insert(domain.table, values)
        details = {f"{domain.singular}_id": row.get("id")}
        details.update({name: row.get(name) for name in domain.summary_fields})
        return {domain.singular: row}, details

    async def _run_update(self, tool: ToolSpec, args: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        domain = self.domain
        updates = dict(args)
        record_id = updates.pop("id")
        target = Query(domain.table).eq("id", record_id)

        if not updates:
            row = await self.store.maybe_single(target)
        else:
            if domain.stamp_updated_at:
                updates["updated_at"] = self.clock().isoformat()
            rows = await self.store.update(target, updates)
            row = rows[0] if rows else None
        if row is None:
            raise NotFoundError(domain.title, record_id)
        return {domain.singular: row}, {f"{domain.singular}_id": record_id, "updates": updates}

    async def _run_delete(self, tool: ToolSpec, args: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        domain = self.domain
        record_id = args["id"]
        await self.store.delete(Query(domain.table).eq("id", record_id))
        key = f"{domain.singular}_id"
        return {"deleted": True, key: record_id}, {key: record_id}
