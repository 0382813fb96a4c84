from __future__ import annotations

from typing import Mapping

from ..domain import DomainConfig
from ..prompts import PromptArgument, PromptSpec, breakdown, flag, percent, static
from ..resources import ResourceResolver, View
from ..statistics import Counter, Dimension, StatisticsSpec, present, within_days
from ..tools import FieldSpec, crud_tools, paging_fields

CONTACT_TYPES = ("Customer", "Lead", "Vendor", "individual")
STATUSES = ("Active", "Inactive")
RECENT_DAYS = 30

VIEWS = (
    View("all", "All Contacts", "Complete list of all contacts in the system", lambda q, w: q),
    View("active", "Active Contacts", "Contacts with Active status", lambda q, w: q.eq("status", "Active")),
    View(
        "recent", "Recent Contacts", f"Contacts added in the last {RECENT_DAYS} days",
        lambda q, w: q.gte("created_at", w.since(RECENT_DAYS)),
        lookback_days=RECENT_DAYS,
    ),
    View(
        "customers", "Customer Contacts", "Contacts of type Customer",
        lambda q, w: q.eq("contact_type", "Customer"),
    ),
    View("leads", "Lead Contacts", "Contacts of type Lead", lambda q, w: q.eq("contact_type", "Lead")),
    View("vendors", "Vendor Contacts", "Contacts of type Vendor", lambda q, w: q.eq("contact_type", "Vendor")),
)

STATISTICS = StatisticsSpec(
    columns=("contact_type", "status", "city", "state", "email", "phone", "created_at"),
    dimensions=(
        Dimension("by_type", "contact_type", CONTACT_TYPES),
        Dimension("by_status", "status", STATUSES),
        Dimension("by_city", "city"),
        Dimension("by_state", "state"),
    ),
    counters=(
        Counter("recent_contacts", within_days("created_at", RECENT_DAYS), RECENT_DAYS),
        Counter("with_email", present("email")),
        Counter("with_phone", present("phone")),
    ),
)

QUERY_FIELDS = (
    FieldSpec("contact_id", "string", "Get a specific contact by its contact_id", filter="eq"),
    FieldSpec("id", "string", "Get a specific contact by its UUID", filter="eq"),
    FieldSpec("contact_type", "string", "Filter by contact type", enum=CONTACT_TYPES, filter="eq"),
    FieldSpec("status", "string", "Filter by status", enum=STATUSES, filter="eq"),
    FieldSpec("city", "string", "Filter by city", filter="ilike"),
    FieldSpec("state", "string", "Filter by state", filter="ilike"),
    FieldSpec("search", "string", "Search in contact name, email, phone, or business name", filter="search"),
    FieldSpec("tags", "array", "Filter by tags (must have all specified tags)", filter="cs"),
    FieldSpec(
        "created_from", "string", "Filter contacts created on or after this date (YYYY-MM-DD)",
        filter="gte", column="created_at",
    ),
    FieldSpec(
        "created_to", "string", "Filter contacts created on or before this date (YYYY-MM-DD)",
        filter="lte", column="created_at",
    ),
    *paging_fields("contacts"),
)

WRITABLE_FIELDS = (
    FieldSpec("full_name", "string", "Full name of the contact"),
    FieldSpec("email", "string", "Email address"),
    FieldSpec("phone", "string", "Phone number"),
    FieldSpec("date_of_birth", "string", "Date of birth (YYYY-MM-DD)"),
    FieldSpec("gender", "string", "Gender"),
    FieldSpec("education_level", "string", "Education level"),
    FieldSpec("profession", "string", "Profession"),
    FieldSpec("experience", "string", "Years of experience"),
    FieldSpec("business_name", "string", "Business name"),
    FieldSpec("address", "string", "Street address"),
    FieldSpec("city", "string", "City"),
    FieldSpec("state", "string", "State"),
    FieldSpec("pincode", "string", "PIN code"),
    FieldSpec("gst_number", "string", "GST number"),
    FieldSpec("contact_type", "string", "Type of contact", enum=CONTACT_TYPES, default="Customer"),
    FieldSpec("status", "string", "Contact status", enum=STATUSES, default="Active"),
    FieldSpec("notes", "string", "Additional notes"),
    FieldSpec("tags", "array", "Tags for categorization", default=[]),
)

UPDATE_ONLY_FIELDS = (
    FieldSpec("last_contacted", "string", "Last contacted timestamp (ISO 8601)"),
)


async def _summary(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    stats = await resolver.statistics()
    total = stats["total"]
    by_status = stats["by_status"]
    by_type = stats["by_type"]

    lines = [
        "# Contact Management Summary",
        "",
        "## Overview",
        f"- **Total Contacts**: {total}",
        f"- **Active Contacts**: {by_status.get('Active', 0)}",
    ]
    if flag(args, "include_inactive"):
        lines.append(f"- **Inactive Contacts**: {by_status.get('Inactive', 0)}")
    lines += [
        "",
        "## Contact Types",
        f"- **Customers**: {by_type.get('Customer', 0)}",
        f"- **Leads**: {by_type.get('Lead', 0)}",
        f"- **Vendors**: {by_type.get('Vendor', 0)}",
        f"- **Individuals**: {by_type.get('individual', 0)}",
        "",
        "## Contact Completeness",
        f"- **With Email**: {stats['with_email']} ({percent(stats['with_email'], total)}%)",
        f"- **With Phone**: {stats['with_phone']} ({percent(stats['with_phone'], total)}%)",
        "",
    ]
    if flag(args, "include_distribution"):
        for title, key in (("Top 5 Cities", "by_city"), ("Top 5 States", "by_state")):
            ranked = breakdown(stats[key], top=5)
            if ranked:
                lines.append(f"## {title}")
                lines.extend(f"- **{place}**: {count} contacts" for place, count in ranked)
                lines.append("")
    lines += [
        "## Recent Activity",
        f"- **Contacts Added (Last {RECENT_DAYS} Days)**: {stats['recent_contacts']}",
    ]
    return "\n".join(lines) + "\n"


async def _contact_by_id(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    contact_id = args["contact_id"]
    contact = await resolver.find("contact_id", contact_id) or await resolver.find("id", contact_id)
    if contact is None:
        return (
            f"# Contact Not Found\n\nContact with ID **{contact_id}** was not found in the system.\n\n"
            "Please verify the contact ID and try again."
        )
    lines = [
        f"# Contact Details: {contact.get('contact_id') or contact.get('id')}",
        "",
        f"## {contact.get('full_name')}",
        "",
        f"- **Type**: {contact.get('contact_type')}",
        f"- **Status**: {contact.get('status')}",
        "",
        "### Contact Information",
    ]
    for column, label in (
        ("email", "Email"),
        ("phone", "Phone"),
        ("business_name", "Business"),
        ("address", "Address"),
        ("city", "City"),
        ("state", "State"),
        ("pincode", "PIN Code"),
    ):
        if contact.get(column):
            lines.append(f"- **{label}**: {contact[column]}")
    tags = contact.get("tags") or []
    if tags:
        lines += ["", f"**Tags**: {', '.join(str(t) for t in tags)}"]
    if contact.get("notes"):
        lines += ["", "### Notes", str(contact["notes"])]
    lines += ["", "### Activity"]
    if contact.get("last_contacted"):
        lines.append(f"- **Last Contacted**: {contact['last_contacted']}")
    lines.append(f"- **Created**: {contact.get('created_at')}")
    return "\n".join(lines) + "\n"


async def _segmentation(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    kind = args.get("segmentation_type") or "general"
    lines = ["# Contact Segmentation Framework", ""]
    lines.extend(text for name, text in SEGMENTS.items() if kind in (name, "general"))
    lines.append(SEGMENTATION_PRACTICE)
    return "\n".join(lines)


BEST_PRACTICES = """# Contact Management Best Practices

## Essential Contact Information

- **Full Name**: complete name, required for every contact
- **Contact Type**: Customer, Lead, Vendor or individual
- **Status**: Active or Inactive
- At least one channel: `phone` with country code, or a verified `email`
- `business_name` for B2B contacts, `gst_number` where applicable

## Data Quality

- Use standardized formats for phone numbers and dates
- Fill `city`, `state` and `pincode` for regional segmentation
- Search with `get_contacts` before creating to avoid duplicates

## Organization

- Use `tags` for industry, interest area and campaign responses
- Mark contacts Inactive after six months without activity
- Update `last_contacted` after every touchpoint

## Privacy

- Collect only the information you need
- Keep GST numbers and personal details out of free-text notes
"""

SEGMENTS = {
    "demographic": """## Demographic Segmentation

### By Contact Type
- **Customer**: retention, upsell and referral requests
- **Lead**: education and qualification
- **Vendor**: operational updates only

### By Profession or Industry
- Group contacts whose `business_name` places them in the same industry
- Tailor examples and case studies per group

### By Education Level
- Adjust the depth of technical detail to the audience
""",
    "geographic": """## Geographic Segmentation

### By Region or State
- Use `state` for regional offers, holidays and language
- Schedule campaigns in the contact's time zone

### By City
- Use `city` for local events and in-person visits
- Normalize spelling and casing so one city is one segment
""",
    "behavioral": """## Behavioral Segmentation

### By Engagement Level
- **Active**: engaged in the last 30 days
- **Dormant**: no engagement in 90 days, candidate for re-engagement
- **Inactive** (`status`): exclude from regular campaigns

### By Purchase Behavior (Customers)
- First-time buyers, repeat buyers and high-value accounts

### By Customer Journey Stage
- Onboarding, growing, at risk, advocate
""",
}

SEGMENTATION_PRACTICE = """## Tag-Based Segmentation

- Keep `tags` short and lowercase (`vip`, `b2b`, `newsletter`)
- Agree on a shared tag list so the same idea is not tagged two ways
- Filter with `get_contacts` and the `tags` argument to pull a segment

## Practical Application

### Best Practices
- Start with a few broad segments and refine them over time
- Review segment membership each quarter
- Make sure every contact belongs to at least one segment

### Communication by Segment
- **VIP customers**: personal outreach from the account owner
- **New customers**: onboarding sequence
- **Leads**: educational content, then a clear offer
- **Vendors**: transactional messages only
"""

ENRICHMENT_GUIDE = """# Contact Data Enrichment

## Why Enrich Contact Data
- Better segmentation and more relevant messages
- Faster qualification and fewer wasted calls
- Fewer bounced emails and wrong numbers

## Key Areas for Enrichment

### 1. Professional Information
- Job title, department and seniority

### 2. Business Details
- `business_name`, industry, company size and website

### 3. Geographic Data
- Full `address`, `city`, `state` and `pincode`

### 4. Communication Preferences
- Preferred channel and best time to reach them
- Language and opt-in status

### 5. Demographic Data
- Only what is relevant to the relationship and lawfully collected

### 6. Behavioral Data
- Last interaction, purchase history and campaign responses

## Enrichment Methods
- Ask during onboarding and support conversations
- Progressive forms that ask one new question each time
- Public business directories and company websites
- Periodic verification emails

## Implementation Plan
1. **Audit**: measure which fields are empty today with `contacts://statistics`
2. **Prioritize**: pick the three fields that matter most for sales
3. **Collect**: add them to intake forms and call scripts
4. **Maintain**: schedule a quarterly review of stale records

## Best Practices
- Never overwrite verified data with unverified data
- Record where each value came from
- Respect privacy rules and the contact's preferences

## Measuring Success
- Share of contacts with email and phone filled in
- Bounce and wrong-number rates
- Campaign response rate per segment
"""

DUPLICATE_GUIDE = """# Duplicate Contact Detection

## Why Duplicates Happen
- The same person signs up through different forms
- Manual entry with typos or different spellings
- Imports without a matching step

## Detection Methods

### Exact Match
- Same `email`
- Same `phone` after removing spaces and country code formatting

### Fuzzy Match
- Similar `full_name` (nicknames, initials, swapped order)
- Same `business_name` with different casing or punctuation

### Multi-Field Match
- Same name and `city`
- Same phone and business name

## Prevention
- Search before creating with `get_contacts` and the `search` argument
- Normalize email to lowercase and phone to one format on entry
- Give `email` a uniqueness check in your intake flow

## Resolving Duplicates
1. **Identify**: list candidate pairs with the queries below
2. **Compare**: choose the most complete and most recent record as primary
3. **Merge**: copy missing fields and `tags` into the primary with `update_contact`
4. **Clean up**: re-point linked tasks and leads, then `delete_contact` the duplicate

## Query Examples
- By email: `get_contacts` with `{"search": "name@example.com"}`
- By phone: `get_contacts` with `{"search": "98100"}`
- By name and city: `get_contacts` with `{"search": "Kapoor", "city": "Pune"}`

## Best Practices
- Merge rather than delete when both records carry history
- Keep a note of merged IDs in the primary record
- Never bulk-delete without a review

## Ongoing Monitoring
- Run a duplicate check after every import
- Track the number of merges per month
"""

PROMPTS = (
    PromptSpec(
        name="contact_summary",
        description="Generate a comprehensive summary of contacts with insights",
        render=_summary,
        arguments=(
            PromptArgument("include_inactive", "Whether to include inactive contacts in the summary"),
            PromptArgument("include_distribution", "Whether to include geographic distribution"),
        ),
    ),
    PromptSpec(
        name="contact_best_practices",
        description="Best practices for managing contact information and relationships",
        render=static(BEST_PRACTICES),
    ),
    PromptSpec(
        name="contact_segmentation",
        description="Recommendations for segmenting contacts into useful groups",
        render=_segmentation,
        arguments=(
            PromptArgument("segmentation_type", "One of demographic, geographic or behavioral; defaults to all three"),
        ),
    ),
    PromptSpec(
        name="contact_enrichment_tips",
        description="How to fill in and keep contact data complete",
        render=static(ENRICHMENT_GUIDE),
    ),
    PromptSpec(
        name="duplicate_detection",
        description="Finding, preventing and merging duplicate contacts",
        render=static(DUPLICATE_GUIDE),
    ),
    PromptSpec(
        name="get_contact_by_id",
        description="Instructions for retrieving a specific contact by its contact_id",
        render=_contact_by_id,
        arguments=(PromptArgument("contact_id", "The contact ID to retrieve", required=True),),
    ),
)

CONTACTS = DomainConfig(
    module="Contacts",
    scheme="contacts",
    table="contacts_master",
    singular="contact",
    plural="contacts",
    title="Contact",
    views=VIEWS,
    statistics=STATISTICS,
    tools=crud_tools(
        "contact",
        "contacts",
        QUERY_FIELDS,
        WRITABLE_FIELDS,
        create_required=("full_name",),
        update_only=UPDATE_ONLY_FIELDS,
        query_description=(
            "Retrieve contacts with advanced filtering and search capabilities. "
            "Use contact_id to get a specific contact."
        ),
    ),
    search_columns=("full_name", "email", "phone", "business_name"),
    summary_fields=("full_name", "contact_type"),
    stamp_updated_at=True,
    prompts=PROMPTS,
)
