"""Account profile reconciliation: fold one call assessment into a profile."""
import logging
from collections import Counter
from datetime import datetime, timezone

from .health import SATISFACTION_MIDPOINT, HealthInputs, assess_health
from .issues import IssueTracker
from .models import (
    AccountProfile,
    CallAssessment,
    CallMetadata,
    CallSummary,
    CategoryCount,
    IssueStatistics,
    StatusSnapshot,
    TrendPoint,
)
from .storage import ProfileRepository
from .trends import (
    STABLE,
    churn_risk_value,
    overall_trend,
    sentiment_value,
    trend_direction,
)

logger = logging.getLogger(__name__)

TOP_CATEGORY_LIMIT = 5


def new_profile(account_id: str, now: datetime) -> AccountProfile:
    """Empty profile for an account with no call history."""
    return AccountProfile(account_id=account_id, created_at=now, updated_at=now)


class ProfileReconciler:
    """Sole writer of account profiles.

    Callers must serialize reconciliations per account; the load, update and
    save cycle is not safe to interleave for the same account id.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        tracker: IssueTracker | None = None,
        satisfaction_midpoint: int = SATISFACTION_MIDPOINT,
    ):
        self.profiles = profiles
        self.tracker = tracker or IssueTracker()
        self.satisfaction_midpoint = satisfaction_midpoint

    def reconcile(
        self,
        account_id: str,
        assessment: CallAssessment,
        metadata: CallMetadata | None = None,
        now: datetime | None = None,
    ) -> AccountProfile:
        """Load, update and save the account's profile.

        Storage errors propagate; the stored profile is only replaced by a
        single complete save at the end.
        """
        now = now or datetime.now(timezone.utc)
        existing = self.profiles.get(account_id)
        if existing is None:
            profile = new_profile(account_id, now)
        else:
            profile = existing.model_copy(deep=True)

        self.apply(profile, assessment, metadata, now)
        self.profiles.save(profile)

        logger.info(
            f"Updated profile {account_id}: call #{profile.total_calls}, "
            f"health {profile.current_status.health_score} ({profile.current_status.health_label})"
        )
        return profile

    def apply(
        self,
        profile: AccountProfile,
        assessment: CallAssessment,
        metadata: CallMetadata | None,
        now: datetime,
    ) -> None:
        """Update ``profile`` in place with one call; performs no I/O."""
        if metadata is not None:
            profile.customer_type = metadata.customer_type
            profile.city = metadata.city
            profile.vertical = metadata.vertical
            profile.vintage_months = metadata.vintage_months
            profile.product_categories = list(metadata.product_categories)

        call = CallSummary(
            call_id=assessment.call_id,
            timestamp=assessment.timestamp,
            summary=assessment.call_summary,
            sentiment=assessment.intent.sentiment,
            issues_raised=len(assessment.issues),
            agent_performance=assessment.agent_performance,
            was_escalated=assessment.escalation_required,
            follow_up_needed=assessment.follow_up_needed,
        )
        if metadata is not None:
            call.duration_seconds = metadata.duration_seconds
            call.direction = metadata.direction

        update = self.tracker.track(
            account_id=profile.account_id,
            call_id=assessment.call_id,
            active=profile.active_issues,
            reported=assessment.issues,
            prompt_resolution=assessment.intent.prompt_resolution,
            now=now,
        )
        profile.active_issues = update.active
        profile.resolved_issues = profile.resolved_issues + update.resolved
        call.issues_resolved = update.resolved_count

        profile.call_history.insert(0, call)
        profile.total_calls = len(profile.call_history)
        profile.last_call_at = assessment.timestamp

        self._update_trends(profile, assessment)
        self._update_status(profile, assessment)
        profile.issue_stats = issue_statistics(profile)
        profile.updated_at = max(now, profile.created_at)

    @staticmethod
    def _update_trends(profile: AccountProfile, assessment: CallAssessment) -> None:
        trends = profile.trends
        day = assessment.timestamp.strftime("%Y-%m-%d")
        call_id = assessment.call_id

        trends.sentiment_history.append(TrendPoint(
            date=day,
            value=sentiment_value(assessment.intent.sentiment),
            label=assessment.intent.sentiment or None,
            call_id=call_id,
        ))
        trends.satisfaction_history.append(TrendPoint(
            date=day, value=float(assessment.intent.satisfaction_score), call_id=call_id
        ))
        trends.issue_history.append(TrendPoint(
            date=day, value=float(len(assessment.issues)), call_id=call_id
        ))
        trends.churn_risk_history.append(TrendPoint(
            date=day,
            value=churn_risk_value(assessment.churn.risk),
            label=assessment.churn.risk or None,
            call_id=call_id,
        ))

        trends.sentiment_trend = trend_direction([p.value for p in trends.sentiment_history])
        trends.satisfaction_trend = trend_direction([p.value for p in trends.satisfaction_history])
        issue_trend = trend_direction([p.value for p in trends.issue_history])
        trends.overall_trend = overall_trend(issue_trend, trends.sentiment_trend)

    def _update_status(self, profile: AccountProfile, assessment: CallAssessment) -> None:
        recurring = sum(1 for issue in profile.active_issues if issue.is_recurring)
        inputs = HealthInputs(
            sentiment=assessment.intent.sentiment,
            satisfaction_score=assessment.intent.satisfaction_score,
            churn_risk=assessment.churn.risk,
            open_issue_count=len(profile.active_issues),
            recurring_issue_count=recurring,
            overall_trend=profile.trends.overall_trend,
        )
        health = assess_health(inputs, self.satisfaction_midpoint)

        if assessment.upsell.has_opportunity:
            upsell_potential = assessment.upsell.willingness_to_invest or "low"
        else:
            upsell_potential = "low"

        profile.current_status = StatusSnapshot(
            sentiment=assessment.intent.sentiment,
            satisfaction_score=assessment.intent.satisfaction_score,
            churn_risk=assessment.churn.risk,
            churn_probability=assessment.churn.probability,
            open_issue_count=len(profile.active_issues),
            upsell_potential=upsell_potential,
            health_score=health.score,
            health_label=health.label,
            needs_attention=health.needs_attention,
            attention_reason=health.attention_reason,
        )


def issue_statistics(profile: AccountProfile) -> IssueStatistics:
    active = profile.active_issues
    resolved = profile.resolved_issues

    resolution_days = [
        (issue.resolved_at - issue.first_reported_at).total_seconds() / 86400
        for issue in resolved
        if issue.resolved_at is not None
    ]
    avg_days = sum(resolution_days) / len(resolved) if resolved else 0.0

    mentions = Counter()
    for issue in active + resolved:
        mentions[issue.category] += issue.mention_count

    return IssueStatistics(
        total_issues_ever=len(active) + len(resolved),
        current_open_count=len(active),
        resolved_count=len(resolved),
        recurring_count=sum(1 for issue in active if issue.is_recurring),
        avg_resolution_days=avg_days,
        top_categories=[
            CategoryCount(category=category, count=count)
            for category, count in mentions.most_common(TOP_CATEGORY_LIMIT)
        ],
        severity_breakdown=dict(Counter(issue.severity for issue in active)),
    )


def build_account_context(profile: AccountProfile | None) -> str:
    """Summarize prior calls as context for analyzing the account's next call."""
    if profile is None or not profile.has_history:
        return ""

    status = profile.current_status
    lines = [
        f"=== ACCOUNT PROFILE (Previous {profile.total_calls} calls) ===",
        f"Health Score: {status.health_score}% ({status.health_label})",
        f"Churn Risk: {status.churn_risk or 'unknown'}",
        f"Overall Trend: {profile.trends.overall_trend}",
    ]

    if profile.active_issues:
        lines.append("")
        lines.append(f"ACTIVE ISSUES ({len(profile.active_issues)}):")
        for issue in profile.active_issues[:5]:
            recurring = " [RECURRING]" if issue.is_recurring else ""
            lines.append(
                f"  - [{issue.category}] {issue.problem}{recurring} "
                f"(mentioned {issue.mention_count} times)"
            )
        if len(profile.active_issues) > 5:
            lines.append(f"  ... and {len(profile.active_issues) - 5} more")

    if profile.call_history:
        lines.append("")
        lines.append("RECENT CALLS:")
        for call in profile.recent_calls(3):
            lines.append(
                f"  - {call.timestamp:%Y-%m-%d}: {call.summary} "
                f"(Sentiment: {call.sentiment or 'unknown'}, Issues: {call.issues_raised})"
            )

    if profile.trends.sentiment_trend != STABLE:
        lines.append("")
        lines.append(f"Sentiment is {profile.trends.sentiment_trend} over recent calls")

    lines.append("=== END ACCOUNT PROFILE ===")
    return "\n".join(lines)
