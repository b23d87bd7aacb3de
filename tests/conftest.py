"""Shared pytest fixtures for testing."""

from datetime import datetime, timedelta, timezone

import pytest

from call_insights.models import (
    CallAssessment,
    CallIntent,
    CallIssue,
    ChurnPrediction,
    UpsellScore,
)
from call_insights.storage import (
    AssessmentRepository,
    FileStore,
    ProfileRepository,
    SummaryRepository,
    TicketRepository,
)


T0 = datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def store(tmp_path):
    return FileStore(tmp_path / "data")


@pytest.fixture
def profiles(store):
    return ProfileRepository(store)


@pytest.fixture
def assessments(store):
    return AssessmentRepository(store)


@pytest.fixture
def summaries(store):
    return SummaryRepository(store)


@pytest.fixture
def tickets(store):
    return TicketRepository(store)


def issue(category: str, severity: str = "medium", problem: str | None = None, action: str = "") -> CallIssue:
    return CallIssue(
        problem=problem or f"{category} problem",
        category=category,
        severity=severity,
        action=action or f"Fix {category}",
    )


def make_assessment(
    call_id: str = "c1",
    account_id: str = "acct-1",
    issues: list[CallIssue] | None = None,
    sentiment: str = "Neutral",
    satisfaction: int = 5,
    prompt_resolution: bool = False,
    churn_risk: str = "medium",
    timestamp: datetime | None = None,
    upsell: bool = False,
) -> CallAssessment:
    return CallAssessment(
        call_id=call_id,
        account_id=account_id,
        timestamp=timestamp or T0,
        issues=issues or [],
        intent=CallIntent(
            sentiment=sentiment,
            satisfaction_score=satisfaction,
            prompt_resolution=prompt_resolution,
        ),
        churn=ChurnPrediction(risk=churn_risk, probability=0.4),
        upsell=UpsellScore(has_opportunity=upsell, willingness_to_invest="high" if upsell else ""),
        call_summary=f"Summary of {call_id}",
    )


def days(n: int) -> timedelta:
    return timedelta(days=n)
