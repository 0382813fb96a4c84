from __future__ import annotations

import pytest

from conftest import AGENT, contact_rows, lead_rows


def _expected(rows, predicate):
    matching = [r for r in rows if predicate(r)]
    return [r["id"] for r in sorted(matching, key=lambda r: r["created_at"], reverse=True)]


def _contains(value, text):
    return value is not None and text.lower() in str(value).lower()


LEAD_CASES = [
    ({"interest": "Hot"}, lambda r: r["interest"] == "Hot"),
    ({"source": "Website", "stage": "new_lead"}, lambda r: r["source"] == "Website" and r["stage"] == "new_lead"),
    (
        {"lead_score_min": 50, "lead_score_max": 80},
        lambda r: r["lead_score"] is not None and 50 <= r["lead_score"] <= 80,
    ),
    ({"lead_score_min": 70.5}, lambda r: r["lead_score"] >= 70.5),
    (
        {"search": "acme"},
        lambda r: any(_contains(r.get(c), "acme") for c in ("name", "email", "phone", "company")),
    ),
    (
        {"search": "acme", "interest": "Cold"},
        lambda r: r["interest"] == "Cold"
        and any(_contains(r.get(c), "acme") for c in ("name", "email", "phone", "company")),
    ),
    ({"created_from": "2026-02-01", "created_to": "2026-03-05"}, lambda r: "2026-02-01" <= r["created_at"] <= "2026-03-05"),
    ({"lead_id": "LEAD-1002"}, lambda r: r["lead_id"] == "LEAD-1002"),
    ({"owner": "Sales Team", "interest": "Warm"}, lambda r: False),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("args,predicate", LEAD_CASES)
async def test_lead_filters_return_exact_subset(leads_gateway, args, predicate) -> None:
    result = await leads_gateway.tools.dispatch("get_leads", args, AGENT, "Tester")
    assert result["success"] is True
    assert [r["id"] for r in result["data"]["leads"]] == _expected(lead_rows(), predicate)
    assert result["data"]["count"] == len(result["data"]["leads"])


CONTACT_CASES = [
    ({"city": "pune"}, lambda r: (r["city"] or "").lower() == "pune"),
    ({"state": "MAHARASHTRA", "status": "Active"}, lambda r: r["state"] == "Maharashtra" and r["status"] == "Active"),
    ({"tags": ["b2b"]}, lambda r: "b2b" in r["tags"]),
    ({"tags": ["vip", "b2b"]}, lambda r: {"vip", "b2b"} <= set(r["tags"])),
    ({"tags": []}, lambda r: True),
    ({"contact_type": "Vendor"}, lambda r: r["contact_type"] == "Vendor"),
    (
        {"search": "desai"},
        lambda r: any(_contains(r.get(c), "desai") for c in ("full_name", "email", "phone", "business_name")),
    ),
    ({"created_from": "2026-01-01"}, lambda r: r["created_at"] >= "2026-01-01"),
    ({"contact_id": "CONT-1002"}, lambda r: r["contact_id"] == "CONT-1002"),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("args,predicate", CONTACT_CASES)
async def test_contact_filters_return_exact_subset(contacts_gateway, args, predicate) -> None:
    result = await contacts_gateway.tools.dispatch("get_contacts", args, AGENT, "Tester")
    assert result["success"] is True
    assert [r["id"] for r in result["data"]["contacts"]] == _expected(contact_rows(), predicate)


@pytest.mark.asyncio
async def test_city_filter_is_exact_not_substring(contacts_gateway) -> None:
    result = await contacts_gateway.tools.dispatch("get_contacts", {"city": "pun"}, AGENT, "Tester")
    assert result["data"]["contacts"] == []


@pytest.mark.asyncio
async def test_audit_details_echo_filters(leads_gateway, store) -> None:
    await leads_gateway.tools.dispatch("get_leads", {"interest": "Hot", "limit": 1}, AGENT, "Tester")
    log = store.rows("ai_agent_logs")[-1]
    assert log["module"] == "Leads"
    assert log["details"] == {"filters": {"interest": "Hot", "limit": 1}, "count": 1}
