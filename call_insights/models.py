"""Data models for call assessments, account profiles and period rollups."""
from datetime import datetime
from pydantic import BaseModel, Field


SEVERITY_LEVELS = {"low": 1, "medium": 2, "high": 3, "critical": 4}


def severity_level(severity: str) -> int:
    """Rank a severity label; unknown labels rank below 'low'."""
    return SEVERITY_LEVELS.get((severity or "").lower(), 0)


# Call assessment (output of the text-understanding layer)

class CallIssue(BaseModel):
    """Single problem raised during a call."""
    problem: str = ""
    category: str = "Other"
    severity: str = "medium"
    action: str = ""


class CallIntent(BaseModel):
    """Caller mood and experience."""
    sentiment: str = ""
    satisfaction_score: int = 0
    prompt_resolution: bool = False
    overall_experience: str = ""


class ChurnPrediction(BaseModel):
    risk: str = ""
    renewal_at_risk: bool = False
    probability: float = 0.0
    reason: str = ""


class UpsellScore(BaseModel):
    has_opportunity: bool = False
    score: int = 0
    willingness_to_invest: str = ""
    is_growth_oriented: bool = False
    interested_features: list[str] = Field(default_factory=list)
    reason: str = ""


class CallAssessment(BaseModel):
    """Structured assessment of a single call."""
    call_id: str
    account_id: str
    timestamp: datetime
    issues: list[CallIssue] = Field(default_factory=list)
    intent: CallIntent = Field(default_factory=CallIntent)
    churn: ChurnPrediction = Field(default_factory=ChurnPrediction)
    upsell: UpsellScore = Field(default_factory=UpsellScore)
    call_summary: str = ""
    agent_performance: str = ""
    follow_up_needed: bool = False
    escalation_required: bool = False
    key_insights: list[str] = Field(default_factory=list)
    transcript_en: str = ""
    raw_response: str | None = None
    parse_error: str | None = None
    analyzed_at: datetime | None = None

    @property
    def is_degraded(self) -> bool:
        return self.parse_error is not None


class CallMetadata(BaseModel):
    """Optional call and account details supplied alongside a transcript."""
    duration_seconds: int = 0
    direction: str = ""
    customer_type: str = ""
    city: str = ""
    vertical: str = ""
    vintage_months: int = 0
    product_categories: list[str] = Field(default_factory=list)


# Account profile

class CallSummary(BaseModel):
    """Compact record of one call for the account timeline."""
    call_id: str
    timestamp: datetime
    duration_seconds: int = 0
    direction: str = ""
    summary: str = ""
    sentiment: str = ""
    issues_raised: int = 0
    issues_resolved: int = 0
    agent_performance: str = ""
    was_escalated: bool = False
    follow_up_needed: bool = False


class TrackedIssue(BaseModel):
    """Issue with lifecycle and recurrence tracking."""
    issue_id: str
    problem: str
    category: str
    severity: str
    action_required: str = ""
    status: str = "open"
    first_reported_at: datetime
    last_mentioned_at: datetime
    resolved_at: datetime | None = None
    mention_count: int = 1
    call_ids: list[str] = Field(default_factory=list)
    is_recurring: bool = False


class StatusSnapshot(BaseModel):
    """Current account status."""
    sentiment: str = ""
    satisfaction_score: int = 0
    churn_risk: str = ""
    churn_probability: float = 0.0
    open_issue_count: int = 0
    upsell_potential: str = "low"
    health_score: int = 50
    health_label: str = "at risk"
    needs_attention: bool = False
    attention_reason: str = ""


class CategoryCount(BaseModel):
    category: str
    count: int


class IssueStatistics(BaseModel):
    total_issues_ever: int = 0
    current_open_count: int = 0
    resolved_count: int = 0
    recurring_count: int = 0
    avg_resolution_days: float = 0.0
    top_categories: list[CategoryCount] = Field(default_factory=list)
    severity_breakdown: dict[str, int] = Field(default_factory=dict)


class TrendPoint(BaseModel):
    date: str
    value: float
    label: str | None = None
    call_id: str | None = None


class TrendSeries(BaseModel):
    """Per-metric time series plus derived directions."""
    sentiment_history: list[TrendPoint] = Field(default_factory=list)
    satisfaction_history: list[TrendPoint] = Field(default_factory=list)
    issue_history: list[TrendPoint] = Field(default_factory=list)
    churn_risk_history: list[TrendPoint] = Field(default_factory=list)
    sentiment_trend: str = "stable"
    satisfaction_trend: str = "stable"
    overall_trend: str = "stable"


class AccountProfile(BaseModel):
    """Long-lived health record for one account."""
    account_id: str
    customer_type: str = ""
    city: str = ""
    vertical: str = ""
    vintage_months: int = 0
    product_categories: list[str] = Field(default_factory=list)
    current_status: StatusSnapshot = Field(default_factory=StatusSnapshot)
    total_calls: int = 0
    call_history: list[CallSummary] = Field(default_factory=list)
    active_issues: list[TrackedIssue] = Field(default_factory=list)
    resolved_issues: list[TrackedIssue] = Field(default_factory=list)
    issue_stats: IssueStatistics = Field(default_factory=IssueStatistics)
    trends: TrendSeries = Field(default_factory=TrendSeries)
    created_at: datetime
    updated_at: datetime
    last_call_at: datetime | None = None

    @property
    def has_history(self) -> bool:
        return self.total_calls > 0

    def recent_calls(self, limit: int = 10) -> list[CallSummary]:
        return self.call_history[:limit]


# Period rollup and tickets

class ProblemCount(BaseModel):
    problem: str
    count: int
    severity: str = "medium"


class CategorySummary(BaseModel):
    """Issue statistics for one category within a period."""
    category: str
    total_count: int
    affected_accounts: int
    affected_account_ids: list[str] = Field(default_factory=list)
    top_problems: list[ProblemCount] = Field(default_factory=list)
    severity_breakdown: dict[str, int] = Field(default_factory=dict)
    examples: list[str] = Field(default_factory=list)


class PeriodSummary(BaseModel):
    """Rollup of all call assessments in one period."""
    period: str
    total_calls: int
    total_issues: int
    categories: dict[str, CategorySummary] = Field(default_factory=dict)
    sentiment_breakdown: dict[str, int] = Field(default_factory=dict)
    churn_risk_breakdown: dict[str, int] = Field(default_factory=dict)
    upsell_opportunities: int = 0
    avg_satisfaction: float = 0.0
    generated_at: datetime


class Ticket(BaseModel):
    """Auto-generated operational ticket for one category."""
    ticket_id: str
    period: str
    category: str
    priority: int
    title: str
    description: str
    top_problems: list[ProblemCount] = Field(default_factory=list)
    affected_count: int
    affected_account_ids: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)
    severity: str
    is_recurring: bool = False
    status: str = "open"
    created_at: datetime


class TranscriptRecord(BaseModel):
    """Raw call transcript awaiting analysis."""
    call_id: str
    account_id: str
    transcript: str
    timestamp: datetime
    metadata: CallMetadata = Field(default_factory=CallMetadata)
    original_summary: str = ""
