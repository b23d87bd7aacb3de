"""Period rollup of call assessments into category-level statistics."""
import logging
from collections import Counter, defaultdict
from datetime import datetime, timezone

from .models import (
    CallAssessment,
    CategorySummary,
    PeriodSummary,
    ProblemCount,
    severity_level,
)

logger = logging.getLogger(__name__)

TOP_PROBLEM_LIMIT = 5
EXAMPLE_LIMIT = 3


class _CategoryTally:
    def __init__(self):
        self.accounts: set[str] = set()
        self.problems: Counter = Counter()
        self.problem_severity: dict[str, str] = {}
        self.severity: Counter = Counter()
        self.examples: list[str] = []

    def add(self, account_id: str, problem: str, severity: str, action: str) -> None:
        self.accounts.add(account_id)
        self.problems[problem] += 1
        self.severity[severity] += 1

        known = self.problem_severity.get(problem)
        if known is None or severity_level(severity) > severity_level(known):
            self.problem_severity[problem] = severity

        if len(self.examples) < EXAMPLE_LIMIT:
            self.examples.append(action)

    def summarize(self, category: str) -> CategorySummary:
        # Counter.most_common keeps first-seen order among equal counts
        top = self.problems.most_common(TOP_PROBLEM_LIMIT)
        return CategorySummary(
            category=category,
            # Only the retained top problems count towards the total
            total_count=sum(count for _, count in top),
            affected_accounts=len(self.accounts),
            affected_account_ids=sorted(self.accounts),
            top_problems=[
                ProblemCount(problem=problem, count=count, severity=self.problem_severity[problem])
                for problem, count in top
            ],
            severity_breakdown=dict(self.severity),
            examples=list(self.examples),
        )


def build_period_summary(
    period: str,
    assessments: list[CallAssessment],
    now: datetime | None = None,
) -> PeriodSummary | None:
    """Fold one period's assessments into a summary; None when there are none."""
    if not assessments:
        logger.debug(f"No assessments for {period}, nothing to aggregate")
        return None

    sentiment = Counter()
    churn_risk = Counter()
    upsell_opportunities = 0
    satisfaction_total = 0
    satisfaction_count = 0
    total_issues = 0
    tallies: dict[str, _CategoryTally] = defaultdict(_CategoryTally)

    for a in assessments:
        if a.intent.sentiment:
            sentiment[a.intent.sentiment] += 1
        if a.churn.risk:
            churn_risk[a.churn.risk] += 1
        if a.upsell.has_opportunity:
            upsell_opportunities += 1
        if a.intent.satisfaction_score > 0:
            satisfaction_total += a.intent.satisfaction_score
            satisfaction_count += 1

        for issue in a.issues:
            total_issues += 1
            tallies[issue.category].add(a.account_id, issue.problem, issue.severity, issue.action)

    avg_satisfaction = satisfaction_total / satisfaction_count if satisfaction_count else 0.0

    summary = PeriodSummary(
        period=period,
        total_calls=len(assessments),
        total_issues=total_issues,
        categories={
            category: tally.summarize(category) for category, tally in tallies.items()
        },
        sentiment_breakdown=dict(sentiment),
        churn_risk_breakdown=dict(churn_risk),
        upsell_opportunities=upsell_opportunities,
        avg_satisfaction=avg_satisfaction,
        generated_at=now or datetime.now(timezone.utc),
    )
    logger.info(
        f"Aggregated {period}: {summary.total_calls} calls, "
        f"{summary.total_issues} issues, {len(summary.categories)} categories"
    )
    return summary
