from __future__ import annotations

import logging
from typing import Any, Dict

from .errors import PermissionDeniedError
from .store import DataStore, Query

logger = logging.getLogger("crm_mcp.permissions")

PERMISSIONS_TABLE = "ai_agent_permissions"

ACTION_FLAGS = {
    "view": "can_view",
    "create": "can_create",
    "edit": "can_edit",
    "delete": "can_delete",
}


class PermissionValidator:
    """
    Fail-closed check of an agent's module/action matrix.

    The matrix is read from the store on every call; nothing is cached.
    """

    def __init__(self, store: DataStore, agent_id: str) -> None:
        self.store = store
        self.agent_id = agent_id

    async def fetch_permissions(self) -> Dict[str, Any]:
        row = await self.store.maybe_single(
            Query(PERMISSIONS_TABLE, columns="permissions").eq("agent_id", self.agent_id)
        )
        if not row:
            logger.warning(f"No permissions found for agent {self.agent_id}", extra={"agent": self.agent_id})
            return {}
        permissions = row.get("permissions")
        return permissions if isinstance(permissions, dict) else {}

    async def can_perform(self, module: str, action: str) -> bool:
        flag = ACTION_FLAGS.get(action)
        if flag is None:
            return False
        permissions = await self.fetch_permissions()
        module_perms = permissions.get(module)
        if not isinstance(module_perms, dict):
            logger.warning(
                f"No permissions for module {module}",
                extra={"agent": self.agent_id},
            )
            return False
        allowed = module_perms.get(flag) is True
        logger.debug(
            f"Permission check module={module} action={action} allowed={allowed}",
            extra={"agent": self.agent_id},
        )
        return allowed

    async def validate_or_raise(self, module: str, action: str) -> None:
        if not await self.can_perform(module, action):
            error = PermissionDeniedError(self.agent_id, module, action)
            logger.warning(str(error), extra={"agent": self.agent_id})
            raise error
