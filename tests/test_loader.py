"""Unit Tests for transcript loading."""

import json
from datetime import date, timezone

import pandas as pd
import pytest

from call_insights.loader import get_date_range, load_transcript_file, load_transcripts


@pytest.fixture
def csv_path(tmp_path):
    rows = [
        {
            "call_id": "c1",
            "account_id": "acct-1",
            "transcript": "Agent: Hello\\nSeller: Hi",
            "call_time": "2025-12-01T09:00:00Z",
            "duration_seconds": 120,
            "direction": "Incoming",
            "customer_type": "STAR",
            "city": "Pune",
            "vertical": "Industrial",
            "vintage_months": 14,
            "product_categories": '["Pumps", "Valves"]',
            "summary": "Billing question",
        },
        {
            "call_id": "c2",
            "account_id": "acct-2",
            "transcript": "Agent: Good morning",
            "call_time": "2025-12-02T10:30:00",
            "duration_seconds": 60,
            "direction": "Outgoing",
            "customer_type": "",
            "city": "",
            "vertical": "",
            "vintage_months": None,
            "product_categories": "Pumps, Valves",
            "summary": "",
        },
        {
            "call_id": "c3",
            "account_id": "acct-1",
            "transcript": "Agent: Bye",
            "call_time": "2025-11-30T08:00:00+00:00",
            "duration_seconds": 30,
            "direction": "Incoming",
            "customer_type": "",
            "city": "",
            "vertical": "",
            "vintage_months": 3,
            "product_categories": None,
            "summary": "",
        },
    ]
    path = tmp_path / "calls.csv"
    pd.DataFrame(rows).to_csv(path, index=False)
    return path


class TestCsvLoading:
    """Tests for loading transcripts from a CSV export."""

    def test_date_range(self, csv_path):
        assert get_date_range(csv_path) == (date(2025, 12, 1), date(2025, 12, 2))

    def test_filter_by_date(self, csv_path):
        records = load_transcripts(csv_path, date(2025, 12, 1), date(2025, 12, 2))

        assert [r.call_id for r in records] == ["c1", "c2"]

    def test_all_records(self, csv_path):
        assert len(load_transcripts(csv_path)) == 3

    def test_fields(self, csv_path):
        first, second, third = load_transcripts(csv_path)

        assert first.transcript == "Agent: Hello\nSeller: Hi"
        assert first.timestamp.tzinfo is not None
        assert first.metadata.duration_seconds == 120
        assert first.metadata.customer_type == "STAR"
        assert first.metadata.vintage_months == 14
        assert first.metadata.product_categories == ["Pumps", "Valves"]
        assert first.original_summary == "Billing question"

        # Naive timestamps are read as UTC
        assert second.timestamp.tzinfo == timezone.utc
        assert second.metadata.vintage_months == 0
        assert second.metadata.city == ""
        assert second.metadata.product_categories == ["Pumps", "Valves"]

        assert third.metadata.product_categories == []

    def test_no_dates(self, tmp_path):
        path = tmp_path / "empty.csv"
        pd.DataFrame([{"call_id": "c1", "call_time": ""}]).to_csv(path, index=False)

        with pytest.raises(ValueError):
            get_date_range(path)


class TestTranscriptFile:
    """Tests for single JSON transcript files."""

    def test_load(self, tmp_path):
        path = tmp_path / "call-42.json"
        path.write_text(json.dumps({
            "account_id": "acct-9",
            "transcript": "Agent: Hello",
            "call_time": "2025-12-01T09:00:00Z",
            "product_categories": [{"name": "Pumps"}, "Valves"],
        }))

        record = load_transcript_file(path)

        assert record.call_id == "call-42"
        assert record.account_id == "acct-9"
        assert record.timestamp.date() == date(2025, 12, 1)
        assert record.metadata.product_categories == ["Pumps", "Valves"]

    def test_explicit_call_id(self, tmp_path):
        path = tmp_path / "drop.json"
        path.write_text(json.dumps({"call_id": "c7", "account_id": "acct-1", "transcript": "Hi"}))

        assert load_transcript_file(path).call_id == "c7"

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError):
            load_transcript_file(path)
