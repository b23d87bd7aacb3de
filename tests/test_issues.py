"""
Unit Tests for Issue Tracking

Tests for category matching, recurrence, severity escalation and resolution.
"""

from conftest import T0, days, issue

from call_insights.issues import IssueTracker, same_category
from call_insights.models import TrackedIssue


def tracked(category: str, severity: str = "medium", mentions: int = 1, issue_id: str | None = None) -> TrackedIssue:
    return TrackedIssue(
        issue_id=issue_id or f"acct-{category}",
        problem=f"{category} problem",
        category=category,
        severity=severity,
        first_reported_at=T0,
        last_mentioned_at=T0,
        mention_count=mentions,
        call_ids=[f"old-{i}" for i in range(mentions)],
        is_recurring=mentions >= 2,
    )


# =============================================================================
# Matching Tests
# =============================================================================


class TestMatching:
    """Tests for issue identity."""

    def test_new_issue_is_created(self):
        """Test that an unmatched issue becomes a new tracked issue."""
        update = IssueTracker().track("acct", "c1", [], [issue("Billing", "high")], False, T0)

        assert len(update.active) == 1
        created = update.active[0]
        assert created.issue_id == "acct-c1-0"
        assert created.category == "Billing"
        assert created.severity == "high"
        assert created.mention_count == 1
        assert created.call_ids == ["c1"]
        assert created.is_recurring is False
        assert created.status == "open"
        assert created.first_reported_at == T0

    def test_same_category_matches(self):
        """Test that the same category updates the existing issue."""
        existing = [tracked("Billing")]
        later = T0 + days(2)
        update = IssueTracker().track(
            "acct", "c2", existing, [issue("Billing", problem="Different wording")], False, later
        )

        assert len(update.active) == 1
        matched = update.active[0]
        assert matched.mention_count == 2
        assert matched.is_recurring is True
        assert matched.call_ids[-1] == "c2"
        assert matched.last_mentioned_at == later
        assert matched.first_reported_at == T0
        assert matched.problem == "Billing problem"

    def test_inputs_are_not_mutated(self):
        """Test that the caller's active list is left untouched."""
        existing = [tracked("Billing")]
        IssueTracker().track("acct", "c2", existing, [issue("Billing")], True, T0)

        assert existing[0].mention_count == 1
        assert existing[0].call_ids == ["old-0"]

    def test_repeated_category_in_one_call(self):
        """Test that only the first issue of a category in a call is recognized."""
        update = IssueTracker().track(
            "acct", "c1", [], [issue("Billing", "low"), issue("Billing", "critical")], False, T0
        )

        assert len(update.active) == 1
        assert update.active[0].mention_count == 1
        assert update.active[0].severity == "low"

    def test_custom_matcher(self):
        """Test that the matching strategy can be replaced."""
        def same_problem(tracked_issue, reported):
            return same_category(tracked_issue, reported) and tracked_issue.problem == reported.problem

        update = IssueTracker(matcher=same_problem).track(
            "acct", "c2", [tracked("Billing")], [issue("Billing", problem="Refund missing")], False, T0
        )

        assert len(update.active) == 2


# =============================================================================
# Severity Tests
# =============================================================================


class TestSeverity:
    """Tests for severity escalation."""

    def test_severity_escalates(self):
        update = IssueTracker().track(
            "acct", "c2", [tracked("Billing", "medium")], [issue("Billing", "critical")], False, T0
        )
        assert update.active[0].severity == "critical"

    def test_severity_never_downgrades(self):
        update = IssueTracker().track(
            "acct", "c2", [tracked("Billing", "high")], [issue("Billing", "low")], False, T0
        )
        assert update.active[0].severity == "high"


# =============================================================================
# Resolution Tests
# =============================================================================


class TestResolution:
    """Tests for resolution on prompt-resolution calls."""

    def test_unmentioned_issues_resolve(self):
        """Test that a resolving call with no issues resolves everything."""
        existing = [tracked("Billing"), tracked("Payments")]
        now = T0 + days(3)
        update = IssueTracker().track("acct", "c3", existing, [], True, now)

        assert update.active == []
        assert update.resolved_count == 2
        for resolved in update.resolved:
            assert resolved.status == "resolved"
            assert resolved.resolved_at == now

    def test_mentioned_issues_stay_active(self):
        """Test that issues mentioned in the resolving call are not resolved."""
        existing = [tracked("Billing"), tracked("Payments")]
        update = IssueTracker().track("acct", "c3", existing, [issue("Billing")], True, T0)

        assert [i.category for i in update.active] == ["Billing"]
        assert [i.category for i in update.resolved] == ["Payments"]

    def test_new_issue_in_resolving_call_stays_active(self):
        update = IssueTracker().track("acct", "c3", [], [issue("Catalog")], True, T0)

        assert len(update.active) == 1
        assert update.resolved_count == 0

    def test_no_resolution_without_signal(self):
        """Test that nothing resolves when the call did not resolve anything."""
        existing = [tracked("Billing"), tracked("Payments")]
        update = IssueTracker().track("acct", "c3", existing, [], False, T0)

        assert len(update.active) == 2
        assert update.resolved_count == 0
        assert all(i.resolved_at is None for i in update.active)


class TestRecurrence:
    """Tests for mention counting across calls."""

    def test_n_calls_same_category(self):
        """Test that N calls in one category give one issue with N mentions."""
        tracker = IssueTracker()
        active = []
        for n in range(1, 5):
            active = tracker.track("acct", f"c{n}", active, [issue("Leads")], False, T0 + days(n)).active

            assert len(active) == 1
            assert active[0].mention_count == n
            assert active[0].is_recurring == (n >= 2)

        assert active[0].call_ids == ["c1", "c2", "c3", "c4"]
