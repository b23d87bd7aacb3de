"""Call insights pipeline - analyze calls, update account profiles, roll up periods."""
import asyncio
import logging
from datetime import date, datetime
from pathlib import Path

import click

from . import config
from .client import APIClient
from .loader import get_date_range, load_transcripts
from .models import PeriodSummary, Ticket
from .orchestrator import AggregationWorker, Analyzer, CallProcessor, run_aggregation
from .profiles import ProfileReconciler
from .storage import (
    AssessmentRepository,
    FallbackStore,
    FileStore,
    ProfileRepository,
    Store,
    SummaryRepository,
    TicketRepository,
)
from .watcher import TranscriptWatcher, reconciled_call_ids

logger = logging.getLogger(__name__)


def build_store() -> Store:
    """File store under DATA_DIR, with an optional fallback directory."""
    primary = FileStore(config.DATA_DIR)
    if config.FALLBACK_DIR:
        return FallbackStore(primary, FileStore(Path(config.FALLBACK_DIR)))
    return primary


def _format_breakdown(counts: dict[str, int]) -> str:
    return ", ".join(f"{k}: {v}" for k, v in sorted(counts.items())) or "N/A"


def _summary_to_markdown(summary: PeriodSummary, tickets: list[Ticket]) -> str:
    """Convert a period summary and its tickets to markdown."""
    lines = [
        "# Call Insights Report",
        f"**Period:** {summary.period}\n",
        "## Overview",
        f"- **Total Calls:** {summary.total_calls}",
        f"- **Total Issues:** {summary.total_issues}",
        f"- **Average Satisfaction:** {summary.avg_satisfaction:.1f}",
        f"- **Upsell Opportunities:** {summary.upsell_opportunities}",
        f"- **Sentiment:** {_format_breakdown(summary.sentiment_breakdown)}",
        f"- **Churn Risk:** {_format_breakdown(summary.churn_risk_breakdown)}",
        "",
        "## Issue Categories"
    ]

    ranked = sorted(summary.categories.values(), key=lambda c: -c.total_count)
    for category in ranked:
        lines.extend([
            f"### {category.category}",
            f"- **Issues:** {category.total_count}",
            f"- **Affected Accounts:** {category.affected_accounts}",
            f"- **Severity:** {_format_breakdown(category.severity_breakdown)}",
            "- **Top Problems:**",
            *[f"  - {p.problem} (x{p.count})" for p in category.top_problems],
            ""
        ])

    lines.append("## Tickets")
    if not tickets:
        lines.append("No category reached the ticket threshold.")
    for ticket in tickets:
        lines.extend([
            f"### P{ticket.priority}: {ticket.title}",
            f"- **Ticket:** {ticket.ticket_id}",
            f"- **Severity:** {ticket.severity}",
            f"- **Recurring Across Accounts:** {'yes' if ticket.is_recurring else 'no'}",
            ""
        ])

    return "\n".join(lines)


async def run_pipeline(
    csv_file: Path,
    start_date: date | None = None,
    end_date: date | None = None
):
    """Run the complete pipeline: analyze -> reconcile profiles -> aggregate."""
    print("=== Call Insights Pipeline ===\n")

    if not csv_file.exists():
        print(f"Error: {csv_file} not found")
        return

    # Determine date range
    if start_date is None or end_date is None:
        print("Determining date range from CSV...")
        default_start, default_end = get_date_range(csv_file)
        start_date = start_date or default_start
        end_date = end_date or default_end
        print(f"Date range: {start_date} to {end_date}\n")

    # Load transcripts, oldest first so each account's calls fold in order
    print(f"Loading transcripts from {csv_file}...")
    records = sorted(load_transcripts(csv_file, start_date, end_date), key=lambda r: r.timestamp)
    print(f"Loaded {len(records)} transcripts\n")

    # Setup layers
    store = build_store()
    profiles = ProfileRepository(store)
    assessments = AssessmentRepository(store)
    summaries = SummaryRepository(store)
    tickets = TicketRepository(store)
    processor = CallProcessor(Analyzer(APIClient()), ProfileReconciler(profiles), assessments)

    # Analyze and reconcile
    print("Analyzing calls and updating account profiles...")
    semaphore = asyncio.Semaphore(config.MAX_CONCURRENT)
    total = len(records)
    completed = 0
    failed = 0

    async def process_with_progress(record):
        nonlocal completed, failed
        try:
            await processor.process(record, semaphore)
        except Exception as e:
            failed += 1
            print(f"\n  Warning: Failed to process {record.call_id}: {e}")
        completed += 1
        print(f"  Progress: {completed}/{total} calls", end="\r")

    await asyncio.gather(*[process_with_progress(r) for r in records])
    print(f"  Progress: {completed}/{total} calls ({failed} failed)\n")

    # Aggregate each period
    print("Generating period summaries and tickets...")
    periods = sorted({r.timestamp.date().isoformat() for r in records})
    reports_dir = config.DATA_DIR / "reports"
    reports_dir.mkdir(parents=True, exist_ok=True)
    for period in periods:
        summary, period_tickets = run_aggregation(period, assessments, summaries, tickets)
        if summary is None:
            continue
        md_file = reports_dir / f"report_{period}.md"
        md_file.write_text(_summary_to_markdown(summary, period_tickets))
        print(f"✓ {period}: {summary.total_calls} calls, {len(period_tickets)} tickets -> {md_file}")

    # Display accounts needing attention
    flagged = [p for p in profiles.load_all() if p.current_status.needs_attention]
    print("\n" + "=" * 60)
    print(f"ACCOUNTS NEEDING ATTENTION: {len(flagged)}")
    print("=" * 60)
    for profile in sorted(flagged, key=lambda p: p.current_status.health_score):
        status = profile.current_status
        print(f"  {profile.account_id}: {status.health_score} ({status.health_label}) - {status.attention_reason}")
    print("=" * 60)


async def run_watcher():
    """Watch the transcripts directory and keep profiles and tickets current."""
    store = build_store()
    profiles = ProfileRepository(store)
    assessments = AssessmentRepository(store)
    processor = CallProcessor(Analyzer(APIClient()), ProfileReconciler(profiles), assessments)
    worker = AggregationWorker(assessments, SummaryRepository(store), TicketRepository(store))
    watcher = TranscriptWatcher(
        processor,
        worker,
        config.TRANSCRIPTS_DIR,
        poll_interval=config.POLL_INTERVAL,
        aggregate_threshold=config.AGGREGATE_THRESHOLD,
        aggregation_interval=config.AGGREGATION_INTERVAL,
        processed=reconciled_call_ids(profiles),
    )
    await watcher.run()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """Call insights - account health profiles and tickets from support calls."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("run")
@click.argument("csv_file", type=click.Path(path_type=Path))
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), help="First call date (YYYY-MM-DD)")
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), help="Last call date (YYYY-MM-DD)")
def run_command(csv_file: Path, start: datetime | None, end: datetime | None):
    """Analyze a CSV export of call transcripts."""
    asyncio.run(run_pipeline(
        csv_file,
        start.date() if start else None,
        end.date() if end else None,
    ))


@main.command("watch")
def watch_command():
    """Poll the transcripts directory and keep profiles and tickets current."""
    try:
        asyncio.run(run_watcher())
    except KeyboardInterrupt:
        click.echo("Stopped")


if __name__ == "__main__":
    main()
