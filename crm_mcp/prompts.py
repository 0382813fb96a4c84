"""
Prompt catalogue.

Prompts are read-only, like resources: they may query the store through the
domain's ``ResourceResolver`` but never pass through the permission check.
MCP prompt arguments always arrive as strings; ``flag`` interprets the
boolean-ish ones.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from .errors import UnknownPromptError, ValidationError

if TYPE_CHECKING:
    from .domain import DomainConfig
    from .resources import ResourceResolver

logger = logging.getLogger("crm_mcp.prompts")

FALSE_VALUES = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str
    required: bool = False


@dataclass(frozen=True)
class PromptSpec:
    name: str
    description: str
    render: Callable[["ResourceResolver", Mapping[str, str]], Awaitable[str]]
    arguments: Tuple[PromptArgument, ...] = ()


def flag(args: Mapping[str, Any], name: str, default: bool = True) -> bool:
    value = args.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in FALSE_VALUES


def static(text: str) -> Callable[["ResourceResolver", Mapping[str, str]], Awaitable[str]]:
    """Render function for a prompt whose body never changes."""
    async def render(resolver: "ResourceResolver", args: Mapping[str, str]) -> str:
        return text
    return render


def breakdown(counts: Mapping[str, int], top: Optional[int] = None) -> List[Tuple[str, int]]:
    """Non-empty buckets, largest first."""
    ranked = sorted(((k, v) for k, v in counts.items() if v), key=lambda item: item[1], reverse=True)
    return ranked[:top] if top is not None else ranked


def percent(part: int, total: int) -> int:
    return round(part * 100 / total) if total else 0


class PromptCatalog:
    def __init__(self, domain: "DomainConfig", resolver: "ResourceResolver") -> None:
        self.domain = domain
        self.resolver = resolver
        self._prompts: Dict[str, PromptSpec] = {p.name: p for p in domain.prompts}

    def list_prompts(self) -> List[PromptSpec]:
        return list(self._prompts.values())

    async def render(self, name: str, arguments: Optional[Mapping[str, str]] = None) -> str:
        prompt = self._prompts.get(name)
        if prompt is None:
            raise UnknownPromptError(name)
        args = dict(arguments or {})
        missing = [a.name for a in prompt.arguments if a.required and not args.get(a.name)]
        if missing:
            raise ValidationError(f"Missing required argument(s) for prompt {name}: {', '.join(missing)}")
        logger.info(f"Rendering prompt {name}", extra={"domain": self.domain.scheme})
        return await prompt.render(self.resolver, args)
