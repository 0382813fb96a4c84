from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "server.yaml"


def is_production_env() -> bool:
    """True when ENVIRONMENT or APP_ENV is set to ``production`` (case-insensitive)."""
    for name in ("ENVIRONMENT", "APP_ENV"):
        if os.getenv(name, "").strip().lower() == "production":
            return True
    return False


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the YAML config.

    An explicit path (argument or MCP_SERVER_CONFIG) must exist. The bundled
    default path is optional; without it the gateway runs on environment
    variables alone.
    """
    explicit = path or (Path(os.environ["MCP_SERVER_CONFIG"]) if os.getenv("MCP_SERVER_CONFIG") else None)
    target = explicit or DEFAULT_CONFIG_PATH
    if not target.exists():
        if explicit is not None:
            raise FileNotFoundError(f"MCP server config not found at {target}")
        return {}
    with target.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping")
    return data


@dataclass
class HttpLimits:
    max_connections: int = 100
    max_keepalive_connections: int = 20
    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    write_timeout: float = 10.0
    pool_timeout: float = 5.0


@dataclass
class GatewaySettings:
    name: str = "crm-mcp-gateway"
    version: str = "1.0.0"
    host: str = "127.0.0.1"
    port: int = 9000
    log_level: str = "INFO"
    transport: str = "stdio"
    domain: str = "tasks"
    store_backend: str = "postgrest"
    store_url: Optional[str] = None
    service_role_key: Optional[str] = None
    seed_file: Optional[str] = None
    http_limits: HttpLimits = field(default_factory=HttpLimits)
    default_agent_id: Optional[str] = None
    default_agent_name: str = "Unknown Agent"
    resolve_active_agent: bool = False
    token: Optional[str] = None

    def server_name(self, domain: str) -> str:
        return f"crm-{domain}-server"


def _env(name: str, fallback: Any) -> Any:
    value = os.getenv(name)
    if value is None or not value.strip():
        return fallback
    return value.strip()


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in {"0", "false", "no", "off", ""}


def load_settings(config: Dict[str, Any]) -> GatewaySettings:
    server_cfg = config.get("server", {}) or {}
    store_cfg = config.get("data_store", {}) or {}
    identity_cfg = config.get("identity", {}) or {}
    security_cfg = config.get("security", {}) or {}
    http_cfg = store_cfg.get("http", {}) or {}

    limits = HttpLimits(
        max_connections=int(http_cfg.get("max_connections", 100)),
        max_keepalive_connections=int(http_cfg.get("max_keepalive_connections", 20)),
        connect_timeout=float(http_cfg.get("connect_timeout", 5.0)),
        read_timeout=float(http_cfg.get("read_timeout", 30.0)),
        write_timeout=float(http_cfg.get("write_timeout", 10.0)),
        pool_timeout=float(http_cfg.get("pool_timeout", 5.0)),
    )
    settings = GatewaySettings(
        name=str(_env("MCP_SERVER_NAME", server_cfg.get("name", "crm-mcp-gateway"))),
        version=str(_env("MCP_SERVER_VERSION", server_cfg.get("version", "1.0.0"))),
        host=str(_env("MCP_SERVER_HOST", server_cfg.get("host", "127.0.0.1"))),
        port=int(_env("MCP_SERVER_PORT", server_cfg.get("port", 9000))),
        log_level=str(_env("MCP_LOG_LEVEL", server_cfg.get("log_level", "INFO"))).upper(),
        transport=str(_env("MCP_TRANSPORT", server_cfg.get("transport", "stdio"))).lower(),
        domain=str(_env("MCP_DOMAIN", server_cfg.get("domain", "tasks"))).lower(),
        store_backend=str(_env("MCP_DATA_STORE", store_cfg.get("backend", "postgrest"))).lower(),
        store_url=_env("SUPABASE_URL", store_cfg.get("url")),
        service_role_key=_env("SUPABASE_SERVICE_ROLE_KEY", store_cfg.get("service_role_key")),
        seed_file=_env("MCP_SEED_FILE", store_cfg.get("seed_file")),
        http_limits=limits,
        default_agent_id=_env("AGENT_ID", identity_cfg.get("default_agent_id")),
        default_agent_name=str(identity_cfg.get("default_agent_name", "Unknown Agent")),
        resolve_active_agent=_flag(identity_cfg.get("resolve_active_agent", False)),
        token=_env("MCP_SERVER_TOKEN", security_cfg.get("token")),
    )
    if settings.transport not in {"stdio", "http"}:
        raise ConfigError(f"Unsupported transport '{settings.transport}' (expected stdio or http)")
    if settings.store_backend not in {"postgrest", "memory"}:
        raise ConfigError(f"Unsupported data store backend '{settings.store_backend}'")
    if settings.store_backend == "postgrest" and not (settings.store_url and settings.service_role_key):
        raise ConfigError("Missing required settings: SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
    if settings.transport == "http" and is_production_env() and not settings.token:
        raise ConfigError(
            "MCP_SERVER_TOKEN is required in production. "
            "Set MCP_SERVER_TOKEN environment variable before starting the MCP server."
        )
    return settings
