from __future__ import annotations

from datetime import date
from typing import Mapping

from ..domain import DomainConfig
from ..prompts import PromptArgument, PromptSpec, flag, static
from ..resources import ResourceResolver, View
from ..statistics import Counter, Dimension, Row, StatisticsSpec, Window
from ..tools import FieldSpec, crud_tools, paging_fields

STATUSES = ("To Do", "In Progress", "Completed", "Cancelled")
PRIORITIES = ("Low", "Medium", "High", "Urgent")
PENDING = ("To Do", "In Progress")
URGENT = ("High", "Urgent")


def _is_pending(row: Row) -> bool:
    return row.get("status") in PENDING


def _overdue(row: Row, window: Window) -> bool:
    due = row.get("due_date")
    return bool(due) and str(due) < window.today and _is_pending(row)


def _due_today(row: Row, window: Window) -> bool:
    return row.get("due_date") == window.today


def _due_this_week(row: Row, window: Window) -> bool:
    due = row.get("due_date")
    return bool(due) and window.today <= str(due) <= window.week_ahead


VIEWS = (
    View("all", "All Tasks", "Complete list of all tasks in the system", lambda q, w: q),
    View(
        "pending",
        "Pending Tasks",
        'Tasks with status "To Do" or "In Progress"',
        lambda q, w: q.in_("status", PENDING).order("due_date"),
        rank=("priority", PRIORITIES),
    ),
    View(
        "overdue",
        "Overdue Tasks",
        "Tasks that are past their due date",
        lambda q, w: q.lt("due_date", w.today).in_("status", PENDING).order("due_date"),
    ),
    View(
        "high-priority",
        "High Priority Tasks",
        'Tasks with priority "High" or "Urgent"',
        lambda q, w: q.in_("priority", URGENT).in_("status", PENDING).order("due_date"),
        rank=("priority", PRIORITIES),
    ),
)

STATISTICS = StatisticsSpec(
    columns=("status", "priority", "due_date"),
    dimensions=(
        Dimension("by_status", "status", STATUSES),
        Dimension("by_priority", "priority", PRIORITIES),
    ),
    counters=(
        Counter("overdue", _overdue),
        Counter("due_today", _due_today),
        Counter("due_this_week", _due_this_week),
    ),
)

QUERY_FIELDS = (
    FieldSpec("status", "string", "Filter by status", enum=STATUSES, filter="eq"),
    FieldSpec("priority", "string", "Filter by priority", enum=PRIORITIES, filter="eq"),
    FieldSpec("assigned_to", "string", "Filter by assigned user ID", filter="eq"),
    FieldSpec("contact_id", "string", "Filter by contact ID", filter="eq"),
    FieldSpec(
        "due_date_from", "string", "Filter tasks due on or after this date (YYYY-MM-DD)",
        filter="gte", column="due_date",
    ),
    FieldSpec(
        "due_date_to", "string", "Filter tasks due on or before this date (YYYY-MM-DD)",
        filter="lte", column="due_date",
    ),
    FieldSpec("search", "string", "Search in task title and description", filter="search"),
    *paging_fields("tasks"),
)

WRITABLE_FIELDS = (
    FieldSpec("title", "string", "Task title"),
    FieldSpec("description", "string", "Task description"),
    FieldSpec("status", "string", "Task status", enum=STATUSES, default="To Do"),
    FieldSpec("priority", "string", "Task priority", enum=PRIORITIES, default="Medium"),
    FieldSpec("due_date", "string", "Due date (YYYY-MM-DD)"),
    FieldSpec("due_time", "string", "Due time (HH:MM)"),
    FieldSpec("contact_id", "string", "Associated contact ID"),
    FieldSpec("assigned_to", "string", "Assigned user ID"),
    FieldSpec("assigned_to_name", "string", "Assigned user name"),
    FieldSpec("supporting_docs", "array", "Array of supporting document URLs"),
)


async def _summary(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    stats = await resolver.statistics()
    by_status = stats["by_status"]
    pending = sum(by_status.get(status, 0) for status in PENDING)

    lines = [
        "# Task Management Summary",
        "",
        "## Overview",
        f"- **Total Tasks**: {stats['total']}",
        f"- **Pending Tasks**: {pending}",
        f"- **Completed Tasks**: {by_status.get('Completed', 0)}",
        "",
    ]
    if flag(args, "include_overdue"):
        overdue = await resolver.collection("overdue")
        if overdue:
            lines.append(f"## Overdue Tasks ({len(overdue)})")
            lines.append("")
            for task in overdue:
                lines.append(f"- **{task.get('title')}** (Due: {task.get('due_date')}, Priority: {task.get('priority')})")
            lines.append("")
    if flag(args, "include_high_priority"):
        urgent = await resolver.collection("high-priority")
        if urgent:
            lines.append(f"## High Priority Tasks ({len(urgent)})")
            lines.append("")
            for task in urgent[:5]:
                lines.append(
                    f"- **{task.get('title')}** (Priority: {task.get('priority')}, "
                    f"Due: {task.get('due_date') or 'Not set'})"
                )
            if len(urgent) > 5:
                lines.append("")
                lines.append(f"...and {len(urgent) - 5} more")
            lines.append("")
    lines.append("## Status Breakdown")
    lines.extend(f"- {status}: {count}" for status, count in by_status.items())
    return "\n".join(lines) + "\n"


async def _task_by_id(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    task_id = args["task_id"]
    task = await resolver.find("task_id", task_id)
    if task is None:
        return (
            f"# Task Not Found\n\nTask **{task_id}** was not found in the system.\n\n"
            "Please verify the task ID and try again."
        )
    lines = [f"# Task Details: {task_id}", "", f"## {task.get('title')}", ""]
    if task.get("description"):
        lines += [f"**Description:** {task['description']}", ""]
    lines += [
        "### Status & Priority",
        f"- **Status:** {task.get('status')}",
        f"- **Priority:** {task.get('priority')}",
        "",
        "### Assignment",
        f"- **Assigned to:** {task.get('assigned_to_name') or 'Unassigned'}",
        "",
        "### Dates",
    ]
    if task.get("due_date"):
        lines.append(f"- **Due Date:** {task['due_date']}")
    lines.append(f"- **Created:** {task.get('created_at')}")
    docs = task.get("supporting_docs") or []
    if docs:
        lines += ["", "### Supporting Documents"]
        lines.extend(f"{n}. {doc}" for n, doc in enumerate(docs, start=1))
    lines += [
        "",
        f"To change this task call `update_task` with `{{\"id\": \"{task.get('id')}\"}}` and the fields to update.",
    ]
    return "\n".join(lines) + "\n"


async def _prioritization(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    lines = ["# Task Prioritization Framework", ""]
    if args.get("user_context"):
        lines += [f"**User Context:** {args['user_context']}", ""]
    lines.append(PRIORITIZATION_GUIDE)
    return "\n".join(lines)


async def _overdue_alert(resolver: ResourceResolver, args: Mapping[str, str]) -> str:
    overdue = await resolver.collection("overdue")
    if not overdue:
        return (
            "# Task Status: All Clear!\n\nYou have no overdue tasks at the moment.\n\n"
            "Keep staying on top of your deadlines.\n"
        )

    today = resolver.clock().date()
    plural = "s" if len(overdue) > 1 else ""
    lines = [
        "# Overdue Tasks Alert",
        "",
        f"You have **{len(overdue)} overdue task{plural}** that need immediate attention:",
        "",
    ]
    for n, task in enumerate(overdue, start=1):
        days = (today - date.fromisoformat(str(task["due_date"])[:10])).days
        lines += [
            f"{n}. **{task.get('title')}**",
            f"   - Priority: {task.get('priority')}",
            f"   - Due Date: {task['due_date']} ({days} day{'s' if days > 1 else ''} overdue)",
            f"   - Status: {task.get('status')}",
        ]
        if task.get("assigned_to_name"):
            lines.append(f"   - Assigned to: {task['assigned_to_name']}")
        lines.append("")
    lines += [
        "## Recommended Actions",
        "",
        "1. Review each overdue task and update its status if it is already done",
        "2. For active tasks, check whether the deadline needs to move",
        "3. Handle overdue high-priority items first",
        "4. Reassign work from overloaded assignees",
        "5. Split large overdue tasks into smaller steps",
    ]
    return "\n".join(lines) + "\n"


CREATION_GUIDE = """# Task Creation Best Practices

## Essential Components of a Well-Structured Task

### 1. Clear and Actionable Title
- Start with an action verb ("Review", "Update", "Create", "Contact")
- Be specific and concise

### 2. Detailed Description
- Explain the context and purpose
- List specific requirements or deliverables
- Note any dependencies or prerequisites

### 3. Appropriate Priority
- **Urgent**: requires immediate attention, blocks other work
- **High**: important and time-sensitive
- **Medium**: standard priority, the default for new tasks
- **Low**: can be done when time permits

### 4. Realistic Due Date
- Use the YYYY-MM-DD format for `due_date` and HH:MM for `due_time`
- Allow buffer time for review

### 5. Clear Assignment
- Set both `assigned_to` and `assigned_to_name`
- Link the related contact through `contact_id`

## Common Mistakes to Avoid

- Creating tasks that are too vague
- Forgetting to assign tasks
- Not updating task status as work progresses
- Creating duplicate tasks
"""

PRIORITIZATION_GUIDE = """## The RICE Method

Score each task on four factors:

- **Reach**: how many people or deals the task affects
- **Impact**: how much it moves a customer or revenue goal (scale 0.25 to 3)
- **Confidence**: how sure you are about reach and impact (percentage)
- **Effort**: person-days needed to finish

RICE score = (Reach x Impact x Confidence) / Effort. Work the highest scores first.

## Priority Matrix

| | Urgent | Not urgent |
|---|---|---|
| **Important** | Do First (`Urgent`) | Schedule (`High`) |
| **Not important** | Delegate (`Medium`) | Eliminate or defer (`Low`) |

## Daily Habits

- Start the day with the `tasks://overdue` and `tasks://high-priority` resources
- Keep no more than three `Urgent` tasks open per person
- Block time for the single most important task before noon
- Move a task to `In Progress` only when work on it has actually started

## Red Flags

- Many tasks marked `Urgent` at once, which usually means nothing is
- Tasks with no due date lingering in `To Do`
- The same task rescheduled more than twice
- Customer-facing tasks without a linked `contact_id`

## Recommended Actions

1. List every open task with `get_tasks` filtered by `status`
2. Re-score anything older than two weeks
3. Downgrade or cancel tasks that no longer serve a current goal
4. Update `priority` and `due_date` with `update_task` as decisions are made
"""

PROMPTS = (
    PromptSpec(
        name="task_summary",
        description="Generate a comprehensive summary of current tasks with statistics and insights",
        render=_summary,
        arguments=(
            PromptArgument("include_overdue", "Whether to include overdue tasks in the summary"),
            PromptArgument("include_high_priority", "Whether to include high-priority tasks in the summary"),
        ),
    ),
    PromptSpec(
        name="task_creation_guide",
        description="Best practices and guidelines for creating well-structured tasks",
        render=static(CREATION_GUIDE),
    ),
    PromptSpec(
        name="task_prioritization",
        description="Framework for ranking tasks by urgency and impact",
        render=_prioritization,
        arguments=(PromptArgument("user_context", "Optional context about current goals or workload"),),
    ),
    PromptSpec(
        name="overdue_alert",
        description="Alert listing overdue tasks with days overdue and recommended actions",
        render=_overdue_alert,
    ),
    PromptSpec(
        name="get_task_by_id",
        description="Instructions for retrieving a specific task by its task_id (e.g., TASK-10031)",
        render=_task_by_id,
        arguments=(PromptArgument("task_id", "The task ID to retrieve (e.g., TASK-10031)", required=True),),
    ),
)

TASKS = DomainConfig(
    module="Tasks",
    scheme="tasks",
    table="tasks",
    singular="task",
    plural="tasks",
    title="Task",
    views=VIEWS,
    statistics=STATISTICS,
    tools=crud_tools("task", "tasks", QUERY_FIELDS, WRITABLE_FIELDS, create_required=("title",)),
    search_columns=("title", "description"),
    summary_fields=("title",),
    prompts=PROMPTS,
)
