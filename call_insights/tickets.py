"""Prioritized tickets derived from a period summary."""
import logging
import re
from datetime import datetime, timezone

from .models import CategorySummary, PeriodSummary, Ticket

logger = logging.getLogger(__name__)

MAX_TICKETS = 5
MIN_CATEGORY_COUNT = 3
CRITICAL_COUNT = 10
HIGH_COUNT = 5
TITLE_PROBLEM_LIMIT = 60
DESCRIPTION_PROBLEM_LIMIT = 3
# One ticket per (period, category); the suffix never increments
TICKET_SUFFIX = "01"


def sanitize(name: str) -> str:
    """Replace every non-alphanumeric character with an underscore."""
    return re.sub(r"\W", "_", name)


def ticket_id(period: str, category: str) -> str:
    return f"{period}-{sanitize(category)}-{TICKET_SUFFIX}"


def ticket_severity(total_count: int) -> str:
    if total_count >= CRITICAL_COUNT:
        return "critical"
    if total_count >= HIGH_COUNT:
        return "high"
    return "medium"


def _title_problem(category: CategorySummary) -> str:
    if not category.top_problems:
        return "Multiple issues reported"
    problem = category.top_problems[0].problem
    if len(problem) > TITLE_PROBLEM_LIMIT:
        problem = problem[:TITLE_PROBLEM_LIMIT - 3] + "..."
    return problem


def _description(period: str, category: CategorySummary, severity: str, recurring: bool) -> str:
    problems = "\n".join(
        f"- {p.problem} (x{p.count})"
        for p in category.top_problems[:DESCRIPTION_PROBLEM_LIMIT]
    )
    breakdown = category.severity_breakdown
    lines = [
        f"Auto-generated ticket for **{category.category}** issues.",
        "",
        "## Summary",
        f"- **Total Issues:** {category.total_count}",
        f"- **Affected Accounts:** {category.affected_accounts}",
        f"- **Recurring Across Accounts:** {'yes' if recurring else 'no'}",
        f"- **Severity:** {severity}",
        f"- **Period:** {period}",
        "",
        "## Top Problems in This Category",
        problems or "- None recorded",
        "",
        "## Severity Breakdown",
        *[f"- {level.capitalize()}: {breakdown.get(level, 0)}"
          for level in ("critical", "high", "medium", "low")],
    ]
    return "\n".join(lines)


def generate_tickets(summary: PeriodSummary, now: datetime | None = None) -> list[Ticket]:
    """Create at most MAX_TICKETS tickets for the busiest qualifying categories."""
    created_at = now or datetime.now(timezone.utc)
    qualifying = [
        c for c in summary.categories.values() if c.total_count >= MIN_CATEGORY_COUNT
    ]
    qualifying.sort(key=lambda c: (-c.total_count, c.category))

    tickets = []
    for priority, category in enumerate(qualifying[:MAX_TICKETS], 1):
        severity = ticket_severity(category.total_count)
        recurring = category.affected_accounts > 1
        tickets.append(Ticket(
            ticket_id=ticket_id(summary.period, category.category),
            period=summary.period,
            category=category.category,
            priority=priority,
            title=(
                f"[{category.category}] {_title_problem(category)} "
                f"({category.total_count} issues from {category.affected_accounts} accounts)"
            ),
            description=_description(summary.period, category, severity, recurring),
            top_problems=list(category.top_problems),
            affected_count=category.affected_accounts,
            affected_account_ids=list(category.affected_account_ids),
            examples=list(category.examples),
            severity=severity,
            is_recurring=recurring,
            created_at=created_at,
        ))

    logger.info(
        f"Generated {len(tickets)} tickets for {summary.period} "
        f"({len(qualifying)} categories with {MIN_CATEGORY_COUNT}+ issues)"
    )
    return tickets
