from __future__ import annotations

from typing import Dict

from ..domain import DomainConfig
from ..errors import ConfigError
from .contacts import CONTACTS
from .leads import LEADS
from .tasks import TASKS

DOMAINS: Dict[str, DomainConfig] = {domain.scheme: domain for domain in (TASKS, LEADS, CONTACTS)}


def get_domain(name: str) -> DomainConfig:
    try:
        return DOMAINS[name.strip().lower()]
    except KeyError:
        raise ConfigError(f"Unknown domain '{name}' (expected one of: {', '.join(DOMAINS)})") from None
