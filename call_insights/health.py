"""Composite account health score and attention flag."""
from dataclasses import dataclass

from .trends import DECLINING, IMPROVING

BASELINE_SCORE = 50
SATISFACTION_MIDPOINT = 5
SATISFACTION_WEIGHT = 4

SENTIMENT_ADJUSTMENT = {"positive": 20, "neutral": 0, "negative": -20}
CHURN_ADJUSTMENT = {"low": 15, "medium": 0, "high": -25}
TREND_ADJUSTMENT = {IMPROVING: 10, DECLINING: -10}

OPEN_ISSUE_PENALTY = 5
OPEN_ISSUE_PENALTY_CAP = 30
RECURRING_ISSUE_PENALTY = 10

HEALTHY_THRESHOLD = 70
AT_RISK_THRESHOLD = 40

HEALTHY = "healthy"
AT_RISK = "at risk"
CRITICAL = "critical"


@dataclass(frozen=True)
class HealthInputs:
    sentiment: str
    satisfaction_score: int
    churn_risk: str
    open_issue_count: int
    recurring_issue_count: int
    overall_trend: str


@dataclass(frozen=True)
class HealthAssessment:
    score: int
    label: str
    needs_attention: bool
    attention_reason: str = ""


def health_label(score: int) -> str:
    if score >= HEALTHY_THRESHOLD:
        return HEALTHY
    if score >= AT_RISK_THRESHOLD:
        return AT_RISK
    return CRITICAL


def health_score(inputs: HealthInputs, midpoint: int = SATISFACTION_MIDPOINT) -> int:
    """Additive score around a neutral baseline, clamped to [0, 100]."""
    score = BASELINE_SCORE
    score += SENTIMENT_ADJUSTMENT.get((inputs.sentiment or "").lower(), 0)
    score += (inputs.satisfaction_score - midpoint) * SATISFACTION_WEIGHT
    score += CHURN_ADJUSTMENT.get((inputs.churn_risk or "").lower(), 0)
    score -= min(inputs.open_issue_count * OPEN_ISSUE_PENALTY, OPEN_ISSUE_PENALTY_CAP)
    # Recurring issues are not capped
    score -= inputs.recurring_issue_count * RECURRING_ISSUE_PENALTY
    score += TREND_ADJUSTMENT.get(inputs.overall_trend, 0)
    return max(0, min(100, score))


def attention_reason(score: int, inputs: HealthInputs) -> str:
    """Return the highest-priority attention trigger, or '' if none applies."""
    if score < AT_RISK_THRESHOLD:
        return "critical health score"
    if (inputs.churn_risk or "").lower() == "high":
        return "high churn risk"
    if inputs.recurring_issue_count > 0:
        return f"{inputs.recurring_issue_count} recurring unresolved issues"
    if inputs.overall_trend == DECLINING:
        return "declining trend detected"
    return ""


def assess_health(inputs: HealthInputs, midpoint: int = SATISFACTION_MIDPOINT) -> HealthAssessment:
    score = health_score(inputs, midpoint)
    reason = attention_reason(score, inputs)
    return HealthAssessment(
        score=score,
        label=health_label(score),
        needs_attention=bool(reason),
        attention_reason=reason,
    )
