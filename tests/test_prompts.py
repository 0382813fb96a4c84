from __future__ import annotations

import pytest

from crm_mcp.errors import UnknownPromptError, ValidationError
from crm_mcp.prompts import breakdown, flag, percent


def test_prompt_names(tasks_gateway, leads_gateway, contacts_gateway) -> None:
    assert [p.name for p in tasks_gateway.prompts.list_prompts()] == [
        "task_summary", "task_creation_guide", "task_prioritization", "overdue_alert", "get_task_by_id",
    ]
    assert [p.name for p in leads_gateway.prompts.list_prompts()] == [
        "lead_summary", "lead_qualification", "lead_conversion_tips", "lead_scoring_guide", "lead_nurturing",
        "get_lead_by_id",
    ]
    assert [p.name for p in contacts_gateway.prompts.list_prompts()] == [
        "contact_summary", "contact_best_practices", "contact_segmentation", "contact_enrichment_tips",
        "duplicate_detection", "get_contact_by_id",
    ]


@pytest.mark.asyncio
async def test_task_summary_lists_overdue(tasks_gateway) -> None:
    text = await tasks_gateway.prompts.render("task_summary", {})

    assert "**Total Tasks**: 7" in text
    assert "**Pending Tasks**: 5" in text
    assert "## Overdue Tasks (2)" in text
    assert "Call back Priya about the renewal" in text
    assert "## High Priority Tasks (4)" in text


@pytest.mark.asyncio
async def test_task_summary_sections_can_be_switched_off(tasks_gateway) -> None:
    text = await tasks_gateway.prompts.render(
        "task_summary", {"include_overdue": "false", "include_high_priority": "no"},
    )
    assert "Overdue Tasks" not in text
    assert "High Priority Tasks" not in text
    assert "## Status Breakdown" in text


@pytest.mark.asyncio
async def test_static_prompt(tasks_gateway) -> None:
    text = await tasks_gateway.prompts.render("task_creation_guide", None)
    assert text.startswith("# Task Creation Best Practices")


@pytest.mark.asyncio
async def test_unknown_prompt(tasks_gateway) -> None:
    with pytest.raises(UnknownPromptError):
        await tasks_gateway.prompts.render("lead_summary", {})


@pytest.mark.asyncio
async def test_missing_required_argument(tasks_gateway) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await tasks_gateway.prompts.render("get_task_by_id", {})
    assert "task_id" in str(exc_info.value)


@pytest.mark.asyncio
async def test_task_by_business_id(tasks_gateway) -> None:
    text = await tasks_gateway.prompts.render("get_task_by_id", {"task_id": "TASK-10001"})
    assert text.startswith("# Task Details: TASK-10001")
    assert "## Call back Priya about the renewal" in text
    assert '{"id": "T1"}' in text


@pytest.mark.asyncio
async def test_task_by_id_not_found(tasks_gateway) -> None:
    text = await tasks_gateway.prompts.render("get_task_by_id", {"task_id": "TASK-99999"})
    assert text.startswith("# Task Not Found")


@pytest.mark.asyncio
async def test_lead_by_id_falls_back_to_row_id(leads_gateway) -> None:
    text = await leads_gateway.prompts.render("get_lead_by_id", {"lead_id": "L2"})
    assert text.startswith("# Lead Details: LEAD-1002")
    assert "## Meera Iyer" in text


@pytest.mark.asyncio
async def test_prompts_skip_permissions_and_audit(leads_gateway, store) -> None:
    store.tables["ai_agent_permissions"] = []
    await leads_gateway.prompts.render("lead_summary", {})
    await leads_gateway.prompts.render("lead_qualification", {})
    assert store.rows("ai_agent_logs") == []


@pytest.mark.parametrize("value,expected", [
    (None, True),
    ("", True),
    ("true", True),
    ("False", False),
    ("0", False),
    (" off ", False),
    (False, False),
])
def test_flag(value, expected) -> None:
    assert flag({"x": value}, "x") is expected


def test_breakdown_and_percent() -> None:
    assert breakdown({"a": 1, "b": 0, "c": 5, "d": 2}, top=2) == [("c", 5), ("d", 2)]
    assert percent(1, 3) == 33
    assert percent(5, 0) == 0


@pytest.mark.asyncio
async def test_overdue_alert_counts_days_overdue(tasks_gateway) -> None:
    text = await tasks_gateway.prompts.render("overdue_alert", {})

    assert text.startswith("# Overdue Tasks Alert")
    assert "**2 overdue tasks**" in text
    assert "1. **Call back Priya about the renewal**" in text
    assert "Due Date: 2026-03-01 (9 days overdue)" in text
    assert "2. **Quarterly review**" in text
    assert "Due Date: 2026-03-08 (2 days overdue)" in text
    assert "Send invoice" not in text
    assert "## Recommended Actions" in text


@pytest.mark.asyncio
async def test_overdue_alert_all_clear(tasks_gateway, store) -> None:
    for task in store.tables["tasks"]:
        if task["id"] in ("T1", "T7"):
            task["status"] = "Completed"
    text = await tasks_gateway.prompts.render("overdue_alert", {})
    assert text.startswith("# Task Status: All Clear!")


@pytest.mark.asyncio
async def test_overdue_alert_shows_assignee(tasks_gateway, store) -> None:
    store.tables["tasks"][0]["assigned_to_name"] = "Asha"
    text = await tasks_gateway.prompts.render("overdue_alert", {})
    assert "   - Assigned to: Asha" in text


@pytest.mark.asyncio
async def test_prioritization_includes_user_context(tasks_gateway) -> None:
    text = await tasks_gateway.prompts.render("task_prioritization", {"user_context": "Quarter-end renewals"})
    assert text.startswith("# Task Prioritization Framework")
    assert "**User Context:** Quarter-end renewals" in text
    assert "## The RICE Method" in text

    text = await tasks_gateway.prompts.render("task_prioritization", {})
    assert "User Context" not in text


@pytest.mark.asyncio
@pytest.mark.parametrize("stage,has_new_lead_section", [
    (None, True),
    ("new_lead", True),
    ("qualified", False),
])
async def test_conversion_tips_by_stage(leads_gateway, stage, has_new_lead_section) -> None:
    args = {"lead_stage": stage} if stage else {}
    text = await leads_gateway.prompts.render("lead_conversion_tips", args)
    assert text.startswith("# Lead Conversion Strategies")
    assert ("## Converting New Leads" in text) is has_new_lead_section
    assert "## Universal Conversion Principles" in text


@pytest.mark.asyncio
async def test_static_lead_guides(leads_gateway) -> None:
    scoring = await leads_gateway.prompts.render("lead_scoring_guide", {})
    assert "| 70-100 | Hot |" in scoring
    nurturing = await leads_gateway.prompts.render("lead_nurturing", {})
    assert "### Awareness (Days 1-14)" in nurturing


@pytest.mark.asyncio
@pytest.mark.parametrize("kind,expected", [
    ("", ["Demographic", "Geographic", "Behavioral"]),
    ("general", ["Demographic", "Geographic", "Behavioral"]),
    ("geographic", ["Geographic"]),
    ("behavioral", ["Behavioral"]),
])
async def test_segmentation_sections(contacts_gateway, kind, expected) -> None:
    text = await contacts_gateway.prompts.render("contact_segmentation", {"segmentation_type": kind})
    sections = [name for name in ("Demographic", "Geographic", "Behavioral") if f"## {name} Segmentation" in text]
    assert sections == expected
    assert "## Tag-Based Segmentation" in text


@pytest.mark.asyncio
async def test_static_contact_guides(contacts_gateway) -> None:
    enrichment = await contacts_gateway.prompts.render("contact_enrichment_tips", {})
    assert enrichment.startswith("# Contact Data Enrichment")
    duplicates = await contacts_gateway.prompts.render("duplicate_detection", {})
    assert "## Resolving Duplicates" in duplicates
