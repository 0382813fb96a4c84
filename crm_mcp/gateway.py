"""
Composition root.

``build_app_context`` constructs the single data store and metrics instance
and hands them to one ``DomainGateway`` per domain. Nothing below this module
builds its own store.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from .config import GatewaySettings
from .domain import DomainConfig
from .domains import DOMAINS, get_domain
from .errors import DataStoreError, MissingIdentityError
from .observability import AuditLogger, InMemoryMetrics, setup_logger
from .prompts import PromptCatalog
from .resources import ResourceResolver
from .store import DataStore, Query, create_store
from .tools import ToolDispatcher

logger = logging.getLogger("crm_mcp.gateway")

AGENTS_TABLE = "ai_agents"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DomainGateway:
    """One domain's resources, tools and prompts over the shared store."""

    def __init__(
        self,
        domain: DomainConfig,
        store: DataStore,
        settings: GatewaySettings,
        metrics: Optional[InMemoryMetrics] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.domain = domain
        self.store = store
        self.settings = settings
        self.metrics = metrics or InMemoryMetrics()
        self.resources = ResourceResolver(domain, store, clock=clock)
        self.audit = AuditLogger(store, domain.module)
        self.tools = ToolDispatcher(domain, store, self.audit, metrics=self.metrics, clock=clock)
        self.prompts = PromptCatalog(domain, self.resources)

    @property
    def name(self) -> str:
        return self.settings.server_name(self.domain.scheme)

    async def _active_agent(self) -> Optional[Dict[str, Any]]:
        query = (
            Query(AGENTS_TABLE, columns="id, name")
            .eq("status", "active")
            .order("created_at")
            .limit(1)
        )
        try:
            rows = await self.store.select(query)
        except DataStoreError as exc:
            logger.warning(f"Active agent lookup failed: {exc}", extra={"domain": self.domain.scheme})
            return None
        return rows[0] if rows else None

    async def resolve_identity(self, arguments: Optional[Dict[str, Any]]) -> Tuple[str, str, Dict[str, Any]]:
        """
        Split caller identity from the tool arguments.

        Order: ``agent_id`` argument, configured ``AGENT_ID``, then (if enabled)
        the first active agent in ``ai_agents``. Raises MissingIdentityError
        when none resolves.
        """
        args = dict(arguments or {})
        agent_id = args.pop("agent_id", None) or self.settings.default_agent_id
        agent_name = args.pop("agent_name", None) or self.settings.default_agent_name

        if not agent_id and self.settings.resolve_active_agent:
            agent = await self._active_agent()
            if agent:
                agent_id = agent.get("id")
                agent_name = agent.get("name") or agent_name
                logger.debug("Using active agent from store", extra={"agent": agent_id})

        if not agent_id:
            raise MissingIdentityError("No agent_id provided and no fallback agent configured")
        return str(agent_id), str(agent_name), args

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            agent_id, agent_name, args = await self.resolve_identity(arguments)
        except MissingIdentityError as exc:
            logger.error(str(exc), extra={"domain": self.domain.scheme, "tool": name})
            return {
                "success": False,
                "error": {
                    "code": MissingIdentityError.code,
                    "message": str(exc),
                    "hint": "Provide agent_id in tool arguments or set AGENT_ID",
                },
            }
        return await self.tools.dispatch(name, args, agent_id, agent_name)


@dataclass
class AppContext:
    settings: GatewaySettings
    store: DataStore
    metrics: InMemoryMetrics
    logger: logging.Logger
    gateways: Dict[str, DomainGateway] = field(default_factory=dict)

    def gateway(self, name: str) -> DomainGateway:
        return self.gateways[name]

    async def aclose(self) -> None:
        await self.store.aclose()


def build_app_context(
    settings: GatewaySettings,
    store: Optional[DataStore] = None,
    domains: Optional[Iterable[str]] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> AppContext:
    app_logger = setup_logger(settings.log_level)
    store = store if store is not None else create_store(settings)
    metrics = InMemoryMetrics()
    selected = list(domains) if domains is not None else list(DOMAINS)
    gateways: Dict[str, DomainGateway] = {}
    for name in selected:
        domain = get_domain(name)
        gateways[domain.scheme] = DomainGateway(domain, store, settings, metrics=metrics, clock=clock)
    app_logger.info(f"Gateway ready for domains: {', '.join(gateways)}")
    return AppContext(settings=settings, store=store, metrics=metrics, logger=app_logger, gateways=gateways)
