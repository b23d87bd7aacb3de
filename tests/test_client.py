"""Unit Tests for the API client and response parsing."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from call_insights import config
from call_insights.client import APIClient, parse_json


def response(text: str) -> SimpleNamespace:
    return SimpleNamespace(content=[SimpleNamespace(text=text)])


def client_with(create: AsyncMock, max_retries: int = 3) -> APIClient:
    client = APIClient(model="test-model", max_retries=max_retries, api_key="test-key")
    client.client = MagicMock()
    client.client.messages.create = create
    return client


# =============================================================================
# APIClient Tests
# =============================================================================


class TestAPIClient:
    """Tests for the retrying API wrapper."""

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(config, "ANTHROPIC_API_KEY", None)

        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            APIClient()

    @pytest.mark.asyncio
    async def test_call_returns_text(self):
        create = AsyncMock(return_value=response("  {\"ok\": true}  "))
        client = client_with(create)

        result = await client.call("prompt", system="system")

        assert result == '{"ok": true}'
        request = create.call_args.kwargs
        assert request["model"] == "test-model"
        assert request["system"] == "system"
        assert request["messages"] == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        create = AsyncMock(side_effect=[RuntimeError("overloaded"), response("done")])
        client = client_with(create, max_retries=2)

        assert await client.call("prompt") == "done"
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_last_failure_propagates(self):
        create = AsyncMock(side_effect=RuntimeError("down"))
        client = client_with(create, max_retries=1)

        with pytest.raises(RuntimeError, match="down"):
            await client.call("prompt")


# =============================================================================
# parse_json Tests
# =============================================================================


class TestParseJson:
    """Tests for lenient JSON extraction from model output."""

    def test_plain(self):
        assert parse_json('{"a": 1}') == {"a": 1}

    def test_code_block(self):
        assert parse_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_preamble(self):
        assert parse_json('Here is the analysis:\n{"a": [1, 2]}') == {"a": [1, 2]}

    def test_trailing_text(self):
        assert parse_json('{"a": {"b": 2}}\nLet me know if you need more.') == {"a": {"b": 2}}

    def test_raw_newlines_in_strings(self):
        assert parse_json('{"summary": "line one\nline two"}') == {"summary": "line one line two"}

    def test_escaped_quotes(self):
        assert parse_json(r'{"quote": "he said \"hi\""}') == {"quote": 'he said "hi"'}

    def test_array_of_objects_after_preamble(self):
        assert parse_json('Issues found:\n[{"a": 1}, {"b": 2}]') == [{"a": 1}, {"b": 2}]

    def test_bracketed_prose_before_object(self):
        assert parse_json('Summary [draft] follows: {"a": 1}') == {"a": 1}

    def test_numbered_prose_before_object(self):
        assert parse_json('[1] Analysis: {"a": 1} done') == {"a": 1}

    def test_unparseable(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json("I could not analyze this call.")
