from __future__ import annotations

import logging
import sys
import threading
from collections import Counter, defaultdict
from typing import Any, DefaultDict, Dict, Optional, Tuple

from .store import DataStore

AUDIT_TABLE = "ai_agent_logs"
USER_CONTEXT = "MCP Server"

audit_logger = logging.getLogger("crm_mcp.audit")


class StructuredFormatter(logging.Formatter):
    """JSON-line formatter that fills missing structured fields with blanks."""

    FIELDS = ("domain", "tool", "agent", "duration_ms")

    def format(self, record: logging.LogRecord) -> str:
        for name in self.FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "")
        return super().format(record)


def setup_logger(log_level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("crm_mcp")
    if logger.handlers:
        return logger
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    logger.setLevel(level)
    # stdout carries the stdio protocol stream
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter(
        '{"ts":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","domain":"%(domain)s",'
        '"tool":"%(tool)s","agent":"%(agent)s","duration_ms":"%(duration_ms)s","msg":"%(message)s"}'
    ))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


class AuditLogger:
    """
    Appends one ``ai_agent_logs`` row per dispatched tool call.

    ``record`` never raises: a lost audit entry must not fail the business
    operation it describes.
    """

    def __init__(self, store: DataStore, module: str) -> None:
        self.store = store
        self.module = module

    async def record(
        self,
        agent_id: str,
        agent_name: str,
        action: str,
        result: str,
        details: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "agent_id": agent_id,
            "agent_name": agent_name,
            "module": self.module,
            "action": action,
            "result": result,
            "error_message": error_message,
            "user_context": USER_CONTEXT,
            "details": details,
        }
        try:
            await self.store.insert(AUDIT_TABLE, entry)
        except Exception as exc:
            audit_logger.error(
                f"Failed to log action: {exc}",
                extra={"tool": action, "agent": agent_id},
            )


class InMemoryMetrics:
    """
    Tool call counters shared by every domain gateway in the process.

    Calls are counted per (domain, tool, outcome); latency is kept as a
    running sum per (domain, tool), the way a Prometheus summary exports it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Counter = Counter()
        self._latency_ms: DefaultDict[Tuple[str, str], float] = defaultdict(float)

    def record(self, domain: str, tool: str, duration_ms: float, error: bool) -> None:
        outcome = "error" if error else "success"
        with self._lock:
            self._calls[(domain, tool, outcome)] += 1
            self._latency_ms[(domain, tool)] += float(duration_ms)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Per-tool totals: domain, calls, errors and latency_ms_sum."""
        with self._lock:
            result: Dict[str, Dict[str, Any]] = {}
            for (domain, tool), latency in sorted(self._latency_ms.items()):
                errors = self._calls[(domain, tool, "error")]
                result[tool] = {
                    "domain": domain,
                    "calls": self._calls[(domain, tool, "success")] + errors,
                    "errors": errors,
                    "latency_ms_sum": latency,
                }
            return result

    def render_prometheus(self) -> str:
        lines = [
            "# HELP crm_mcp_healthy Gateway health status",
            "# TYPE crm_mcp_healthy gauge",
            "crm_mcp_healthy 1",
        ]
        with self._lock:
            calls = sorted(self._calls.items())
            latency = sorted(self._latency_ms.items())
        if calls:
            lines.append("# HELP crm_mcp_tool_calls_total Tool calls by outcome")
            lines.append("# TYPE crm_mcp_tool_calls_total counter")
            for (domain, tool, outcome), count in calls:
                lines.append(
                    f'crm_mcp_tool_calls_total{{domain="{domain}",tool="{tool}",outcome="{outcome}"}} {count}'
                )
            lines.append("# HELP crm_mcp_tool_latency_ms_sum Total tool latency in milliseconds")
            lines.append("# TYPE crm_mcp_tool_latency_ms_sum counter")
            for (domain, tool), total in latency:
                lines.append(f'crm_mcp_tool_latency_ms_sum{{domain="{domain}",tool="{tool}"}} {total:.3f}')
        return "\n".join(lines) + "\n"
