"""Transcript loading from CSV exports and JSON drop files."""
import json
import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pandas as pd

from .models import CallMetadata, TranscriptRecord

logger = logging.getLogger(__name__)


def _parse_timestamp(value) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _text(value) -> str:
    if value is None or (not isinstance(value, (list, dict)) and pd.isna(value)):
        return ""
    return str(value)


def _int(value) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _categories(value) -> list[str]:
    """Product categories may arrive as a list, a JSON string or be missing."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [c.strip() for c in value.split(",") if c.strip()]
    if not isinstance(value, list):
        return []
    names = []
    for item in value:
        if isinstance(item, dict):
            name = item.get("name") or item.get("category")
            if name:
                names.append(str(name))
        elif item:
            names.append(str(item))
    return names


def record_from_row(row: dict, fallback_id: str) -> TranscriptRecord:
    """Build a transcript record from a loosely-typed row or JSON object."""
    timestamp = _parse_timestamp(row.get("call_time")) or datetime.now(timezone.utc)
    return TranscriptRecord(
        call_id=_text(row.get("call_id")) or fallback_id,
        account_id=_text(row.get("account_id")) or "unknown",
        transcript=_text(row.get("transcript")).replace("\\n", "\n"),
        timestamp=timestamp,
        metadata=CallMetadata(
            duration_seconds=_int(row.get("duration_seconds")),
            direction=_text(row.get("direction")),
            customer_type=_text(row.get("customer_type")),
            city=_text(row.get("city")),
            vertical=_text(row.get("vertical")),
            vintage_months=_int(row.get("vintage_months")),
            product_categories=_categories(row.get("product_categories")),
        ),
        original_summary=_text(row.get("summary")),
    )


def get_date_range(csv_path: Path) -> tuple[date, date]:
    """Extract date range from CSV (latest and previous day)."""
    df = pd.read_csv(csv_path)

    dates = []
    for value in df.get("call_time", []):
        dt = _parse_timestamp(value)
        if dt is not None:
            dates.append(dt.date())

    if not dates:
        raise ValueError("No valid dates found in CSV")

    latest_date = max(dates)
    previous_date = latest_date - timedelta(days=1)
    return previous_date, latest_date


def load_transcripts(
    csv_path: Path,
    start_date: date | None = None,
    end_date: date | None = None
) -> list[TranscriptRecord]:
    """Load call transcripts from CSV, optionally filtered by call date."""
    df = pd.read_csv(csv_path)

    records = []
    for idx, row in df.iterrows():
        record = record_from_row(row.to_dict(), fallback_id=f"call_{idx}")

        call_date = record.timestamp.date()
        if start_date is not None and call_date < start_date:
            continue
        if end_date is not None and call_date > end_date:
            continue

        records.append(record)

    return records


def load_transcript_file(path: Path) -> TranscriptRecord:
    """Load a single JSON transcript file; the file stem is the fallback call id."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return record_from_row(data, fallback_id=Path(path).stem)
