"""Short-window trend direction over account time series."""
from collections.abc import Sequence

IMPROVING = "improving"
STABLE = "stable"
DECLINING = "declining"

TREND_WINDOW = 3
TREND_THRESHOLD = 0.1

SENTIMENT_VALUES = {"positive": 1.0, "neutral": 0.5, "negative": 0.0}
CHURN_RISK_VALUES = {"high": 1.0, "medium": 0.5, "low": 0.0}


def sentiment_value(sentiment: str) -> float:
    """Map a sentiment label onto [0, 1]; unknown labels count as negative."""
    return SENTIMENT_VALUES.get((sentiment or "").lower(), 0.0)


def churn_risk_value(risk: str) -> float:
    return CHURN_RISK_VALUES.get((risk or "").lower(), 0.0)


def trend_direction(values: Sequence[float]) -> str:
    """Compare the averages of the two halves of the last few observations.

    With fewer than two observations the trend is stable. The window is the
    last three values; the first half holds ``n // 2`` of them (at least one)
    and the second half holds the rest.
    """
    if len(values) < 2:
        return STABLE

    recent = list(values[-TREND_WINDOW:])
    mid = max(1, len(recent) // 2)
    first_half = sum(recent[:mid]) / mid
    second_half = sum(recent[mid:]) / (len(recent) - mid)

    diff = second_half - first_half
    if diff > TREND_THRESHOLD:
        return IMPROVING
    if diff < -TREND_THRESHOLD:
        return DECLINING
    return STABLE


def overall_trend(issue_trend: str, sentiment_trend: str) -> str:
    """Combine issue volume and sentiment into one direction.

    Fewer issues over time is an improvement, so the issue trend is inverted.
    A stable issue trend defers to the sentiment trend.
    """
    if issue_trend == DECLINING:
        return IMPROVING
    if issue_trend == IMPROVING:
        return DECLINING
    return sentiment_trend
