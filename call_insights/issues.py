"""Issue identity, recurrence and resolution tracking for one account."""
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from .models import CallIssue, TrackedIssue, severity_level

logger = logging.getLogger(__name__)

IssueMatcher = Callable[[TrackedIssue, CallIssue], bool]


def same_category(tracked: TrackedIssue, reported: CallIssue) -> bool:
    """Treat every issue in a category as the same tracked issue."""
    return tracked.category == reported.category


@dataclass
class IssueUpdate:
    """Result of folding one call's issues into the active set."""
    active: list[TrackedIssue]
    resolved: list[TrackedIssue] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return len(self.resolved)


class IssueTracker:
    """Match reported issues against tracked ones and resolve the rest.

    Matching is pluggable through ``matcher``; the default identifies issues by
    category only. Only the first issue of a category in a single call is
    recognized, later ones in the same call are skipped.
    """

    def __init__(self, matcher: IssueMatcher = same_category):
        self.matcher = matcher

    def track(
        self,
        account_id: str,
        call_id: str,
        active: list[TrackedIssue],
        reported: list[CallIssue],
        prompt_resolution: bool,
        now: datetime,
    ) -> IssueUpdate:
        """Fold one call's issues into ``active`` without mutating the inputs."""
        current = [issue.model_copy(deep=True) for issue in active]
        mentioned: set[str] = set()
        seen_categories: set[str] = set()

        for issue in reported:
            if issue.category in seen_categories:
                logger.debug(
                    f"Skipping repeated '{issue.category}' issue in call {call_id}"
                )
                continue
            seen_categories.add(issue.category)

            existing = self._find(current, issue)
            if existing is not None:
                self._mention(existing, issue, call_id, now)
                mentioned.add(existing.issue_id)
            else:
                tracked = TrackedIssue(
                    issue_id=f"{account_id}-{call_id}-{len(current)}",
                    problem=issue.problem,
                    category=issue.category,
                    severity=issue.severity,
                    action_required=issue.action,
                    first_reported_at=now,
                    last_mentioned_at=now,
                    mention_count=1,
                    call_ids=[call_id],
                )
                current.append(tracked)
                mentioned.add(tracked.issue_id)

        if not prompt_resolution:
            return IssueUpdate(active=current)

        still_active = []
        resolved = []
        for issue in current:
            if issue.issue_id in mentioned:
                still_active.append(issue)
            else:
                issue.status = "resolved"
                issue.resolved_at = now
                resolved.append(issue)

        return IssueUpdate(active=still_active, resolved=resolved)

    def _find(self, current: list[TrackedIssue], issue: CallIssue) -> TrackedIssue | None:
        for tracked in current:
            if self.matcher(tracked, issue):
                return tracked
        return None

    @staticmethod
    def _mention(tracked: TrackedIssue, issue: CallIssue, call_id: str, now: datetime) -> None:
        tracked.last_mentioned_at = now
        tracked.mention_count += 1
        tracked.call_ids.append(call_id)
        if tracked.mention_count >= 2:
            tracked.is_recurring = True

        # Severity only escalates
        if severity_level(issue.severity) > severity_level(tracked.severity):
            tracked.severity = issue.severity
