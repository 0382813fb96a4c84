from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for all gateway errors."""
    pass


class GatewayClientError(GatewayError):
    """Caller-side errors - bad URI, bad arguments, missing rights."""
    pass


class GatewayServerError(GatewayError):
    """Server-side errors - store or configuration failures."""
    pass


class UnknownResourceError(GatewayClientError):
    def __init__(self, uri: str) -> None:
        self.uri = uri
        super().__init__(f"Unknown resource URI: {uri}")


class NotFoundError(GatewayClientError):
    def __init__(self, entity: str, record_id: str) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found: {record_id}")


class PermissionDeniedError(GatewayClientError):
    def __init__(self, agent_id: str, module: str, action: str) -> None:
        self.agent_id = agent_id
        self.module = module
        self.action = action
        super().__init__(f"Permission denied: Agent {agent_id} cannot {action} {module}")


class ValidationError(GatewayClientError):
    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class UnknownOperationError(GatewayClientError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class UnknownPromptError(GatewayClientError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown prompt: {name}")


class MissingIdentityError(GatewayClientError):
    code = "MISSING_AGENT_ID"


class DataStoreError(GatewayServerError):
    """The underlying store rejected or failed an operation."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(GatewayServerError):
    pass
