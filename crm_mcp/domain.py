from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

from .statistics import StatisticsSpec
from .tools import ToolSpec

if TYPE_CHECKING:
    from .prompts import PromptSpec
    from .resources import View


@dataclass(frozen=True)
class DomainConfig:
    """
    Everything that differs between the tasks, leads and contacts gateways.

    ``module`` is the key in the agent permission matrix and the audit log,
    ``scheme`` the resource URI scheme and MCP mount name.
    """

    module: str
    scheme: str
    table: str
    singular: str
    plural: str
    title: str
    views: Tuple["View", ...]
    statistics: StatisticsSpec
    tools: Tuple[ToolSpec, ...]
    search_columns: Tuple[str, ...]
    # copied from the created row into the audit details
    summary_fields: Tuple[str, ...] = ()
    stamp_updated_at: bool = False
    prompts: Tuple["PromptSpec", ...] = ()

    @property
    def record_template(self) -> str:
        return f"{self.scheme}://{self.singular}/{{id}}"
