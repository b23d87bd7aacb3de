"""Unit Tests for trend direction."""

import pytest

from call_insights.trends import (
    DECLINING,
    IMPROVING,
    STABLE,
    churn_risk_value,
    overall_trend,
    sentiment_value,
    trend_direction,
)


class TestTrendDirection:
    """Tests for the short-window trend estimator."""

    @pytest.mark.parametrize("values", [[], [3.0]])
    def test_too_few_points_is_stable(self, values):
        assert trend_direction(values) == STABLE

    def test_increasing_is_improving(self):
        assert trend_direction([1.0, 2.0, 3.0]) == IMPROVING

    def test_decreasing_is_declining(self):
        assert trend_direction([3.0, 2.0, 1.0]) == DECLINING

    def test_constant_is_stable(self):
        assert trend_direction([4.0, 4.0, 4.0, 4.0]) == STABLE

    def test_two_points(self):
        assert trend_direction([0.0, 0.5]) == IMPROVING
        assert trend_direction([0.5, 0.0]) == DECLINING

    def test_only_last_three_points_count(self):
        """Test that older observations outside the window are ignored."""
        assert trend_direction([10.0, 10.0, 1.0, 1.0, 1.0]) == STABLE

    def test_three_point_halves(self):
        """Test that the first half holds one point and the second two."""
        # first = 1.0, second = (1.0 + 1.1) / 2 = 1.05
        assert trend_direction([1.0, 1.0, 1.1]) == STABLE
        # first = 1.0, second = (0.0 + 1.0) / 2 = 0.5
        assert trend_direction([1.0, 0.0, 1.0]) == DECLINING

    def test_small_changes_are_stable(self):
        assert trend_direction([5.0, 5.05]) == STABLE

    def test_deterministic(self):
        values = [0.5, 1.0, 0.0, 0.5]
        assert trend_direction(values) == trend_direction(list(values))


class TestOverallTrend:
    """Tests for combining issue and sentiment trends."""

    def test_fewer_issues_is_improving(self):
        assert overall_trend(DECLINING, DECLINING) == IMPROVING

    def test_more_issues_is_declining(self):
        assert overall_trend(IMPROVING, IMPROVING) == DECLINING

    @pytest.mark.parametrize("sentiment", [IMPROVING, STABLE, DECLINING])
    def test_stable_issues_follow_sentiment(self, sentiment):
        assert overall_trend(STABLE, sentiment) == sentiment


class TestValueMapping:
    def test_sentiment_values(self):
        assert sentiment_value("Positive") == 1.0
        assert sentiment_value("neutral") == 0.5
        assert sentiment_value("Negative") == 0.0
        assert sentiment_value("") == 0.0

    def test_churn_values(self):
        assert churn_risk_value("high") == 1.0
        assert churn_risk_value("Medium") == 0.5
        assert churn_risk_value("low") == 0.0
