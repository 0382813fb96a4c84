from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest

from crm_mcp.config import GatewaySettings
from crm_mcp.domains.contacts import CONTACTS
from crm_mcp.domains.leads import LEADS
from crm_mcp.domains.tasks import TASKS
from crm_mcp.gateway import DomainGateway
from crm_mcp.memory_store import InMemoryStore

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

AGENT = "agent-1"
READ_ONLY_AGENT = "agent-readonly"

FULL = {"can_view": True, "can_create": True, "can_edit": True, "can_delete": True}


def clock() -> datetime:
    return NOW


def task_rows() -> List[Dict[str, Any]]:
    return [
        {"id": "T1", "task_id": "TASK-10001", "title": "Call back Priya about the renewal", "status": "To Do",
         "priority": "High", "due_date": "2026-03-01", "created_at": "2026-03-01T09:00:00+00:00"},
        {"id": "T2", "task_id": "TASK-10002", "title": "Send invoice", "status": "In Progress",
         "priority": "Urgent", "due_date": "2026-03-10", "created_at": "2026-03-02T09:00:00+00:00"},
        {"id": "T3", "task_id": "TASK-10003", "title": "Archive old files", "status": "Completed",
         "priority": "Low", "due_date": "2026-03-05", "created_at": "2026-03-03T09:00:00+00:00"},
        {"id": "T4", "task_id": "TASK-10004", "title": "Prepare demo", "description": "Renewal pitch deck",
         "status": "To Do", "priority": "Medium", "due_date": "2026-03-15",
         "created_at": "2026-03-04T09:00:00+00:00"},
        {"id": "T5", "task_id": "TASK-10005", "title": "Cancelled offsite", "status": "Cancelled",
         "priority": None, "due_date": None, "created_at": "2026-03-05T09:00:00+00:00"},
        {"id": "T6", "task_id": "TASK-10006", "title": "Fix onboarding email", "status": "To Do",
         "priority": "Urgent", "due_date": "2026-03-20", "created_at": "2026-03-06T09:00:00+00:00"},
        {"id": "T7", "task_id": "TASK-10007", "title": "Quarterly review", "status": "In Progress",
         "priority": "High", "due_date": "2026-03-08", "created_at": "2026-03-07T09:00:00+00:00"},
    ]


def lead_rows() -> List[Dict[str, Any]]:
    return [
        {"id": "L1", "lead_id": "LEAD-1001", "name": "Arjun Mehta", "email": "arjun@acme.test",
         "phone": "+91 90000 00001", "company": "Acme Textiles", "source": "Website", "interest": "Hot",
         "stage": "new_lead", "owner": "Sales Team", "lead_score": 82,
         "created_at": "2026-03-01T10:00:00+00:00", "last_contact": "2026-03-08T10:00:00+00:00"},
        {"id": "L2", "lead_id": "LEAD-1002", "name": "Meera Iyer", "email": None, "phone": "+91 90000 00002",
         "company": "Iyer Foods", "source": "Referral", "interest": "Warm", "stage": "qualified",
         "owner": "Asha", "lead_score": 55, "created_at": "2026-01-15T10:00:00+00:00"},
        {"id": "L3", "lead_id": "LEAD-1003", "name": "Ravi Acme", "email": "ravi@example.test", "phone": None,
         "company": None, "source": "Website", "interest": "Cold", "stage": "new_lead", "owner": "Sales Team",
         "lead_score": 20, "created_at": "2026-02-20T10:00:00+00:00"},
        {"id": "L4", "lead_id": "LEAD-1004", "name": "Sara Khan", "email": "sara@khan.test", "phone": "",
         "company": "Khan & Co", "source": None, "interest": "Hot", "stage": None, "owner": None,
         "lead_score": 70, "created_at": "2026-03-09T10:00:00+00:00"},
    ]


def contact_rows() -> List[Dict[str, Any]]:
    return [
        {"id": "C1", "contact_id": "CONT-1001", "full_name": "Neha Kapoor", "email": "neha@example.test",
         "phone": "+91 98100 00001", "business_name": "Kapoor Exports", "city": "Pune", "state": "Maharashtra",
         "contact_type": "Customer", "status": "Active", "tags": ["vip", "b2b"],
         "created_at": "2026-03-02T08:00:00+00:00"},
        {"id": "C2", "contact_id": "CONT-1002", "full_name": "Vikram Rao", "email": None, "phone": "+91 98100 00002",
         "business_name": None, "city": "PUNE", "state": "Maharashtra", "contact_type": "Lead",
         "status": "Inactive", "tags": ["b2b"], "created_at": "2025-12-01T08:00:00+00:00"},
        {"id": "C3", "contact_id": "CONT-1003", "full_name": "Anita Desai", "email": "anita@desai.test",
         "phone": None, "business_name": "Desai Supplies", "city": "Mumbai", "state": None,
         "contact_type": "Vendor", "status": "Active", "tags": [], "created_at": "2026-02-25T08:00:00+00:00"},
    ]


def permission_rows() -> List[Dict[str, Any]]:
    return [
        {"agent_id": AGENT, "permissions": {"Tasks": FULL, "Leads": FULL, "Contacts": FULL}},
        {"agent_id": READ_ONLY_AGENT, "permissions": {"Tasks": {"can_view": True, "can_create": False}}},
    ]


def make_store() -> InMemoryStore:
    return InMemoryStore(
        tables={
            "tasks": task_rows(),
            "leads": lead_rows(),
            "contacts_master": contact_rows(),
            "ai_agent_permissions": permission_rows(),
            "ai_agent_logs": [],
        },
        clock=clock,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return make_store()


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(store_backend="memory")


@pytest.fixture
def tasks_gateway(store: InMemoryStore, settings: GatewaySettings) -> DomainGateway:
    return DomainGateway(TASKS, store, settings, clock=clock)


@pytest.fixture
def leads_gateway(store: InMemoryStore, settings: GatewaySettings) -> DomainGateway:
    return DomainGateway(LEADS, store, settings, clock=clock)


@pytest.fixture
def contacts_gateway(store: InMemoryStore, settings: GatewaySettings) -> DomainGateway:
    return DomainGateway(CONTACTS, store, settings, clock=clock)
