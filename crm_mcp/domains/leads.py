from __future__ import annotations

from typing import Mapping

from ..domain import DomainConfig
from ..prompts import PromptArgument, PromptSpec, breakdown, flag, static
from ..resources import ResourceResolver, View
from ..statistics import Average, Counter, Dimension, StatisticsSpec, at_least, present, within_days
from ..tools import FieldSpec, crud_tools, paging_fields

INTERESTS = ("Hot", "Warm", "Cold")
SOURCES = ("Website", "Referral", "Social Media", "Direct", "Phone", "Webinar", "Import")
HIGH_SCORE = 70
RECENT_DAYS = 30
CONTACTED_DAYS = 7

VIEWS = (
    View("all", "All Leads", "Complete list of all leads in the system", lambda q, w: q),
    View(
        "hot", "Hot Leads", "Leads with Hot interest level",
        lambda q, w: q.eq("interest", "Hot").order("lead_score", ascending=False),
    ),
    View(
        "warm", "Warm Leads", "Leads with Warm interest level",
        lambda q, w: q.eq("interest", "Warm").order("lead_score", ascending=False),
    ),
    View("cold", "Cold Leads", "Leads with Cold interest level", lambda q, w: q.eq("interest", "Cold")),
    View(
        "high-score", "High Score Leads", f"Leads with a score of {HIGH_SCORE} or higher",
        lambda q, w: q.gte("lead_score", HIGH_SCORE).order("lead_score", ascending=False),
    ),
    View(
        "recent", "Recent Leads", f"Leads created in the last {RECENT_DAYS} days",
        lambda q, w: q.gte("created_at", w.since(RECENT_DAYS)),
        lookback_days=RECENT_DAYS,
    ),
    View("new", "New Leads", 'Leads in the "new_lead" stage', lambda q, w: q.eq("stage", "new_lead")),
)

STATISTICS = StatisticsSpec(
    columns=(
        "stage", "interest", "source", "owner", "lead_score",
        "created_at", "last_contact", "email", "phone",
    ),
    dimensions=(
        Dimension("by_stage", "stage"),
        Dimension("by_interest", "interest", INTERESTS),
        Dimension("by_source", "source"),
        Dimension("by_owner", "owner"),
    ),
    averages=(Average("average_score", "lead_score"),),
    counters=(
        Counter("high_score_leads", at_least("lead_score", HIGH_SCORE)),
        Counter("recent_leads", within_days("created_at", RECENT_DAYS), RECENT_DAYS),
        Counter("with_email", present("email")),
        Counter("with_phone", present("phone")),
        Counter("contacted_recently", within_days("last_contact", CONTACTED_DAYS), CONTACTED_DAYS),
    ),
)

QUERY_FIELDS = (
    FieldSpec("lead_id", "string", "Get a specific lead by its lead_id", filter="eq"),
    FieldSpec("id", "string", "Get a specific lead by its UUID", filter="eq"),
    FieldSpec("stage", "string", "Filter by stage", filter="eq"),
    FieldSpec("interest", "string", "Filter by interest level", enum=INTERESTS, filter="eq"),
    FieldSpec("source", "string", "Filter by lead source", enum=SOURCES, filter="eq"),
    FieldSpec("owner", "string", "Filter by lead owner", filter="eq"),
    FieldSpec("pipeline_id", "string", "Filter by pipeline ID", filter="eq"),
    FieldSpec("lead_score_min", "number", "Minimum lead score (0-100)", filter="gte", column="lead_score"),
    FieldSpec("lead_score_max", "number", "Maximum lead score (0-100)", filter="lte", column="lead_score"),
    FieldSpec("search", "string", "Search in lead name, email, phone, or company", filter="search"),
    FieldSpec(
        "created_from", "string", "Filter leads created on or after this date (YYYY-MM-DD)",
        filter="gte", column="created_at",
    ),
    FieldSpec(
        "created_to", "string", "Filter leads created on or before this date (YYYY-MM-DD)",
        filter="lte", column="created_at",
    ),
    *paging_fields("leads"),
)

WRITABLE_FIELDS = (
    FieldSpec("name", "string", "Lead name"),
    FieldSpec("email", "string", "Email address"),
    FieldSpec("phone", "string", "Phone number"),
    FieldSpec("source", "string", "Lead source", enum=SOURCES),
    FieldSpec("interest", "string", "Interest level", enum=INTERESTS, default="Warm"),
    FieldSpec("stage", "string", "Lead stage", default="new_lead"),
    FieldSpec("owner", "string", "Lead owner", default="Sales Team"),
    FieldSpec("address", "string", "Address"),
    FieldSpec("company", "string", "Company name"),
    FieldSpec("notes", "string", "Additional notes"),
    FieldSpec("lead_score", "number", "Lead score (0-100)", default=50),
    FieldSpec("pipeline_id", "string", "Pipeline ID"),
    FieldSpec("affiliate_id", "string", "Affiliate ID if referred"),
)

UPDATE_ONLY_FIELDS = (
    FieldSpec("last_contact", "string", "Last contact timestamp (ISO 8601)"),
)


async def _summary(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    stats = await resolver.statistics()
    by_interest = stats["by_interest"]

    lines = [
        "# Lead Management Summary",
        "",
        "## Overview",
        f"- **Total Leads**: {stats['total']}",
    ]
    lines.extend(f"- **{interest} Leads**: {by_interest.get(interest, 0)}" for interest in INTERESTS)
    lines += [
        "",
        "## Lead Quality",
        f"- **Average Score**: {stats['average_score']}/100",
        f"- **High Score Leads ({HIGH_SCORE}+)**: {stats['high_score_leads']}",
        "",
    ]
    if flag(args, "include_hot_leads"):
        hot = await resolver.collection("hot")
        if hot:
            lines += [f"## Hot Leads ({len(hot)})", ""]
            for lead in hot[:10]:
                line = f"- **{lead.get('name')}** (Score: {lead.get('lead_score')}, Stage: {lead.get('stage')})"
                if lead.get("company"):
                    line += f" - {lead['company']}"
                lines.append(line)
            if len(hot) > 10:
                lines += ["", f"...and {len(hot) - 10} more hot leads"]
            lines.append("")
    if flag(args, "include_stage_breakdown"):
        stages = breakdown(stats["by_stage"])
        if stages:
            lines.append("## Pipeline Stage Breakdown")
            lines.extend(f"- **{stage}**: {count} leads" for stage, count in stages)
            lines.append("")
    sources = breakdown(stats["by_source"])
    if sources:
        lines.append("## Lead Sources")
        lines.extend(f"- **{source}**: {count} leads" for source, count in sources)
        lines.append("")
    lines += [
        "## Recent Activity",
        f"- **New Leads (Last {RECENT_DAYS} Days)**: {stats['recent_leads']}",
        f"- **Contacted (Last {CONTACTED_DAYS} Days)**: {stats['contacted_recently']}",
    ]
    return "\n".join(lines) + "\n"


async def _lead_by_id(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    lead_id = args["lead_id"]
    lead = await resolver.find("lead_id", lead_id) or await resolver.find("id", lead_id)
    if lead is None:
        return (
            f"# Lead Not Found\n\nLead with ID **{lead_id}** was not found in the system.\n\n"
            "Please verify the lead ID and try again."
        )
    lines = [f"# Lead Details: {lead.get('lead_id') or lead.get('id')}", "", f"## {lead.get('name')}", ""]
    lines.append("### Contact Information")
    for column, label in (("email", "Email"), ("phone", "Phone"), ("company", "Company"), ("address", "Address")):
        if lead.get(column):
            lines.append(f"- **{label}**: {lead[column]}")
    lines += [
        "",
        "### Lead Status",
        f"- **Interest Level**: {lead.get('interest')}",
        f"- **Stage**: {lead.get('stage')}",
        f"- **Owner**: {lead.get('owner')}",
        f"- **Lead Score**: {lead.get('lead_score')}/100",
    ]
    if lead.get("source"):
        lines.append(f"- **Source**: {lead['source']}")
    if lead.get("notes"):
        lines += ["", "### Notes", str(lead["notes"])]
    lines += ["", "### Activity"]
    if lead.get("last_contact"):
        lines.append(f"- **Last Contacted**: {lead['last_contact']}")
    lines.append(f"- **Created**: {lead.get('created_at')}")
    return "\n".join(lines) + "\n"


async def _conversion_tips(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    stage = args.get("lead_stage") or "general"
    lines = ["# Lead Conversion Strategies", ""]
    if stage in ("new_lead", "general"):
        lines.append(NEW_LEAD_TIPS)
    lines.append(CONVERSION_PRINCIPLES)
    return "\n".join(lines)


QUALIFICATION_GUIDE = """# Lead Qualification Framework

## BANT

### Budget
- Is budget allocated, and who controls it?
- Red flag: no budget, or budget far below the solution cost

### Authority
- Who makes the final decision, and who else is involved?
- Red flag: no access to a decision maker

### Need
- What problem is the lead trying to solve, and why now?
- Red flag: no clear pain point

### Timeline
- When does the lead need a solution in place?
- Red flag: "just exploring options"

## Scoring and Interest Levels

- **Hot** (score 70-100): qualified on most BANT criteria, ready for a proposal
- **Warm** (score 40-69): clear need, open questions on budget or timing
- **Cold** (score 0-39): early research, nurture before sales contact

## Recording the Outcome

1. Update `lead_score` and `interest` with `update_lead`
2. Move `stage` forward once a criterion is confirmed
3. Set `last_contact` after every conversation
4. Keep the reasoning in `notes`
"""

NEW_LEAD_TIPS = """## Converting New Leads

### Initial Response (First 5 Minutes)
- Reply to new inquiries right away
- Mention what the lead actually asked about
- Offer something useful in the first message

### First Call
1. **Build rapport**: open with a friendly conversation
2. **Understand needs**: ask open-ended questions
3. **Position value**: connect the offer to their problem
4. **Set the next step**: book a follow-up or demo before hanging up
"""

CONVERSION_PRINCIPLES = """## Universal Conversion Principles

### 1. Speed to Lead
- Contact new leads within minutes, not hours
- Automate the first acknowledgement

### 2. Personalization
- Use their name, company and industry
- Address the pain points they described

### 3. Value First
- Share relevant content or a short consultation
- Solve a small problem before asking for commitment

### 4. Social Proof
- Share testimonials and case studies from similar customers

### 5. Objection Handling
- Listen to the whole concern before answering
- Confirm the objection is resolved before moving on

## Communication Practices

- Keep messages short and specific
- End every touch with one clear next step
- Log each interaction so `last_contact` stays current

## Follow-Up Cadence

| Day | Touch |
|---|---|
| 1 | Call and email |
| 3 | Follow-up email with useful content |
| 7 | Second call |
| 14 | Check-in message |
| 30 | Final value offer, then move to nurturing |

## Do's and Don'ts

- **Do** qualify before pitching
- **Do** update `stage` and `interest` after each conversation
- **Don't** send the same template to every lead
- **Don't** let a Hot lead go a week without contact

## Metrics to Track

- Response time to new leads
- Conversion rate per `stage` and per `source`
- Average days from `new_lead` to `qualified`
"""

SCORING_GUIDE = """# Lead Scoring Guide

`lead_score` runs from 0 to 100 and is built from three groups.

## Demographic Fit (up to 30 points)
- Company size and industry match your ideal customer: up to 15
- Contact is a decision maker: up to 10
- Located in a region you serve: up to 5

## Behavioral Engagement (up to 40 points)
- Requested a demo or quote: 15
- Replied to outreach or booked a call: 10
- Visited pricing or product pages repeatedly: 10
- Opened or clicked recent emails: 5

## Purchase Intent (up to 30 points)
- Stated budget: 10
- Stated timeline under three months: 10
- Described a concrete problem you solve: 10

## Score Bands

| Score | `interest` | Action |
|---|---|---|
| 70-100 | Hot | Contact today, route to sales |
| 40-69 | Warm | Nurture with targeted follow-up |
| 0-39 | Cold | Keep in long-term nurturing |

## Negative Scoring
- Invalid email or phone: -10
- Competitor or student inquiry: -20
- No response after five touches: -15
- Unsubscribed from email: -10

## Keeping Scores Current
- Re-score after every meaningful interaction
- Decay engagement points after 30 days of silence
- Review the model each quarter against won and lost deals
"""

NURTURING_GUIDE = """# Lead Nurturing Playbook

## Nurturing Stages

### Awareness (Days 1-14)
- Welcome message and an introduction to what you offer
- Educational content that names the problem

### Consideration (Days 15-30)
- Case studies and comparisons
- Invite to a webinar or short call

### Decision (Days 31-60)
- Tailored proposal or trial
- Address pricing and implementation questions directly

### Re-engagement (Day 61 onward)
- "Still interested?" message with a new angle
- Move unresponsive leads to a quarterly touch

## Multi-Channel Approach
- Email for content and updates
- Phone for Hot and Warm leads
- WhatsApp or SMS for short reminders where the lead opted in
- Social channels for light-touch engagement

## Nurturing by Source
- **Website**: follow up on the page or form they used
- **Referral**: mention the referrer and move faster
- **Events**: reference the conversation you had
- **Cold outreach**: lead with value, expect a longer cycle

## Personalization
- Segment by industry, `source` and `stage`
- Reference the last interaction in every message

## Automation
- Trigger sequences on `stage` changes
- Alert the owner when a nurtured lead re-engages

## Content Calendar
- Week 1: welcome and overview
- Week 2: educational article
- Week 3: customer story
- Week 4: offer or invitation

## Metrics
- Engagement rate per sequence
- Share of nurtured leads that become `qualified`
- Time from first touch to conversion

## Common Mistakes
- Sending too often
- Generic messages with no relevance to the lead
- No clear call to action

## When to Stop
- The lead asks to stop
- No engagement after the re-engagement stage
- The lead is clearly outside your ideal customer profile
"""

PROMPTS = (
    PromptSpec(
        name="lead_summary",
        description="Generate a comprehensive summary of leads with pipeline insights",
        render=_summary,
        arguments=(
            PromptArgument("include_stage_breakdown", "Whether to include breakdown by pipeline stage"),
            PromptArgument("include_hot_leads", "Whether to list hot leads"),
        ),
    ),
    PromptSpec(
        name="lead_qualification",
        description="Framework and criteria for qualifying leads effectively",
        render=static(QUALIFICATION_GUIDE),
    ),
    PromptSpec(
        name="lead_conversion_tips",
        description="Strategies and tactics for converting leads into customers",
        render=_conversion_tips,
        arguments=(PromptArgument("lead_stage", "Pipeline stage to focus on (e.g., new_lead); defaults to general"),),
    ),
    PromptSpec(
        name="lead_scoring_guide",
        description="How lead scores are built and what each score band means",
        render=static(SCORING_GUIDE),
    ),
    PromptSpec(
        name="lead_nurturing",
        description="Playbook for nurturing leads through the pipeline",
        render=static(NURTURING_GUIDE),
    ),
    PromptSpec(
        name="get_lead_by_id",
        description="Instructions for retrieving a specific lead by its lead_id",
        render=_lead_by_id,
        arguments=(PromptArgument("lead_id", "The lead ID to retrieve", required=True),),
    ),
)

LEADS = DomainConfig(
    module="Leads",
    scheme="leads",
    table="leads",
    singular="lead",
    plural="leads",
    title="Lead",
    views=VIEWS,
    statistics=STATISTICS,
    tools=crud_tools(
        "lead",
        "leads",
        QUERY_FIELDS,
        WRITABLE_FIELDS,
        create_required=("name",),
        update_only=UPDATE_ONLY_FIELDS,
        query_description=(
            "Retrieve leads with advanced filtering and search capabilities. "
            "Use lead_id to get a specific lead."
        ),
    ),
    search_columns=("name", "email", "phone", "company"),
    summary_fields=("name", "lead_score"),
    stamp_updated_at=True,
    prompts=PROMPTS,
)
