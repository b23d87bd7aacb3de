"""Layer coordination: analysis, serialized profile updates and aggregation."""
import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone

from .aggregator import build_period_summary
from .client import APIClient, parse_json
from .models import AccountProfile, CallAssessment, PeriodSummary, Ticket, TranscriptRecord
from .profiles import ProfileReconciler, build_account_context
from .prompts import ANALYZE_PROMPT, CATEGORIES, SYSTEM_PROMPT
from .storage import AssessmentRepository, SummaryRepository, TicketRepository
from .tickets import generate_tickets

logger = logging.getLogger(__name__)

_RESERVED_FIELDS = {"call_id", "account_id", "timestamp", "analyzed_at", "raw_response", "parse_error"}


class Analyzer:
    """Layer 1: Turn a transcript into a structured call assessment."""

    def __init__(self, api_client: APIClient):
        self.api = api_client

    async def analyze(
        self,
        record: TranscriptRecord,
        account_context: str = "",
        semaphore: asyncio.Semaphore | None = None
    ) -> CallAssessment:
        """Assess one call.

        API failures propagate after the client's retries. A response that
        cannot be parsed still yields an assessment, with the raw text kept in
        ``raw_response`` and the reason in ``parse_error``.
        """
        base = {
            "call_id": record.call_id,
            "account_id": record.account_id,
            "timestamp": record.timestamp,
            "analyzed_at": datetime.now(timezone.utc),
        }
        if not record.transcript.strip():
            logger.warning(f"Empty transcript for call {record.call_id}")
            return CallAssessment(**base, parse_error="empty transcript")

        prompt = ANALYZE_PROMPT.format(
            transcript=record.transcript,
            account_context=f"\n{account_context}\n" if account_context else "",
            categories=", ".join(CATEGORIES),
        )
        content = await self.api.call(prompt, system=SYSTEM_PROMPT, semaphore=semaphore)

        try:
            data = parse_json(content)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            assessment = CallAssessment(**base, **self._normalize(data))
        except ValueError as e:
            logger.warning(f"Failed to parse analysis for call {record.call_id}: {e}")
            return CallAssessment(
                **base,
                transcript_en=record.transcript,
                raw_response=content,
                parse_error=str(e),
            )

        if not assessment.transcript_en:
            assessment.transcript_en = record.transcript
        return assessment

    @staticmethod
    def _normalize(data: dict) -> dict:
        """Normalize LLM response to handle variations in structure."""
        normalized = {k: v for k, v in data.items() if k not in _RESERVED_FIELDS}

        # Normalize issues
        issues = normalized.get("issues")
        if isinstance(issues, list):
            normalized_issues = []
            for issue in issues:
                if not isinstance(issue, dict):
                    continue
                normalized_issues.append({
                    "problem": str(issue.get("problem") or issue.get("description") or ""),
                    "category": str(issue.get("category") or issue.get("bucket") or "Other").strip(),
                    "severity": str(issue.get("severity") or "medium").lower(),
                    "action": str(issue.get("action") or issue.get("actionable_summary") or ""),
                })
            normalized["issues"] = normalized_issues
        else:
            normalized["issues"] = []

        # Null fields fall back to model defaults
        for section in ("intent", "churn", "upsell"):
            if isinstance(normalized.get(section), dict):
                normalized[section] = {k: v for k, v in normalized[section].items() if v is not None}

        # Normalize intent
        intent = normalized.get("intent")
        if isinstance(intent, dict):
            sentiment = intent.get("sentiment")
            if isinstance(sentiment, str):
                intent["sentiment"] = sentiment.strip().capitalize()
            score = intent.get("satisfaction_score")
            if isinstance(score, (int, float, str)):
                try:
                    intent["satisfaction_score"] = round(float(score))
                except ValueError:
                    intent["satisfaction_score"] = 0
        else:
            normalized.pop("intent", None)

        # Normalize churn
        churn = normalized.get("churn")
        if isinstance(churn, dict):
            risk = churn.get("risk") or churn.get("is_likely_to_churn") or ""
            churn["risk"] = str(risk).strip().lower()
            if "probability" not in churn and "churn_probability" in churn:
                churn["probability"] = churn["churn_probability"]
        else:
            normalized.pop("churn", None)

        # Normalize upsell
        upsell = normalized.get("upsell")
        if isinstance(upsell, dict):
            willingness = upsell.get("willingness_to_invest")
            if isinstance(willingness, str):
                upsell["willingness_to_invest"] = willingness.strip().lower()
            features = upsell.get("interested_features")
            if isinstance(features, list):
                upsell["interested_features"] = [str(f) for f in features]
            else:
                upsell["interested_features"] = []
        else:
            normalized.pop("upsell", None)

        # Normalize key_insights
        insights = normalized.get("key_insights")
        if isinstance(insights, list):
            normalized["key_insights"] = [
                insight.get("insight") or str(insight) if isinstance(insight, dict) else str(insight)
                for insight in insights
            ]
        else:
            normalized.pop("key_insights", None)

        for field in ("call_summary", "agent_performance", "transcript_en"):
            if field in normalized and not isinstance(normalized[field], str):
                normalized[field] = str(normalized[field])

        return normalized


class KeyedLock:
    """One asyncio lock per key; locks are dropped once nobody holds or awaits them."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter = Counter()

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __contains__(self, key: str) -> bool:
        return key in self._locks


class CallProcessor:
    """Layer 2: Analyze a call and fold it into the account's profile.

    Calls for the same account are serialized, calls for different accounts
    run concurrently.
    """

    def __init__(
        self,
        analyzer: Analyzer,
        reconciler: ProfileReconciler,
        assessments: AssessmentRepository,
        locks: KeyedLock | None = None,
    ):
        self.analyzer = analyzer
        self.reconciler = reconciler
        self.assessments = assessments
        self.locks = locks or KeyedLock()

    async def process(
        self,
        record: TranscriptRecord,
        semaphore: asyncio.Semaphore | None = None
    ) -> tuple[CallAssessment, AccountProfile]:
        async with self.locks.hold(record.account_id):
            context = build_account_context(self.reconciler.profiles.get(record.account_id))
            assessment = await self.analyzer.analyze(record, context, semaphore)
            # Saved before reconciling so a retry after a failed profile save is idempotent
            self.assessments.save(assessment)
            profile = self.reconciler.reconcile(record.account_id, assessment, record.metadata)
        return assessment, profile


def run_aggregation(
    period: str,
    assessments: AssessmentRepository,
    summaries: SummaryRepository,
    tickets: TicketRepository,
) -> tuple[PeriodSummary | None, list[Ticket]]:
    """Layer 3: Summarize a period and replace its tickets.

    A period without assessments is skipped. Everything is computed before the
    first save. The ticket set is replaced first and the summary is written
    last, so a stored summary always belongs to a completed run; a failed save
    raises and leaves the previous summary in place for a rerun.
    """
    day = date.fromisoformat(period)
    summary = build_period_summary(period, assessments.for_date(day))
    if summary is None:
        return None, []

    period_tickets = generate_tickets(summary)
    tickets.replace_period(period, period_tickets)
    summaries.save(summary)

    logger.info(
        f"Aggregation complete for {period}: {summary.total_calls} calls, "
        f"{summary.total_issues} issues, {len(period_tickets)} tickets"
    )
    return summary, period_tickets


class AggregationWorker:
    """Single consumer of aggregation requests.

    Triggers only enqueue a period; a request for a period that is already
    queued or running is ignored, so runs for a period never overlap.
    """

    def __init__(
        self,
        assessments: AssessmentRepository,
        summaries: SummaryRepository,
        tickets: TicketRepository,
    ):
        self.assessments = assessments
        self.summaries = summaries
        self.tickets = tickets
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._pending: set[str] = set()
        self._task: asyncio.Task | None = None

    def request(self, period: str) -> bool:
        """Queue an aggregation run; returns False if one is already pending."""
        if period in self._pending:
            logger.debug(f"Aggregation for {period} already pending")
            return False
        self._pending.add(period)
        self._queue.put_nowait(period)
        return True

    def is_pending(self, period: str) -> bool:
        return period in self._pending

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.info("Aggregation worker started")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Aggregation worker stopped")

    async def drain(self) -> None:
        """Wait until every queued request has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            period = await self._queue.get()
            try:
                run_aggregation(period, self.assessments, self.summaries, self.tickets)
            except Exception:
                logger.exception(f"Aggregation failed for {period}")
            finally:
                self._pending.discard(period)
                self._queue.task_done()
