"""Anthropic API client abstraction."""
import asyncio
import json
import logging
from anthropic import AsyncAnthropic

from . import config

logger = logging.getLogger(__name__)


class APIClient:
    """Wrapper around Anthropic API with retry and timeout handling."""

    def __init__(
        self,
        model: str = config.MODEL,
        max_retries: int = 3,
        api_key: str | None = None,
    ):
        api_key = api_key or config.ANTHROPIC_API_KEY
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")
        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_retries = max_retries

    async def call(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        semaphore: asyncio.Semaphore | None = None
    ) -> str:
        """Call the API with automatic retry and timeout handling."""
        request = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system

        for attempt in range(self.max_retries):
            try:
                if semaphore:
                    async with semaphore:
                        response = await asyncio.wait_for(
                            self.client.messages.create(**request), timeout=timeout
                        )
                else:
                    response = await asyncio.wait_for(
                        self.client.messages.create(**request), timeout=timeout
                    )

                return response.content[0].text.strip()

            except Exception as e:
                if attempt < self.max_retries - 1:
                    logger.warning(f"API call failed (attempt {attempt + 1}), retrying: {e}")
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise


def _flatten_newlines(content: str) -> str:
    """Replace raw newlines inside JSON string literals with spaces."""
    out = []
    in_string = False
    escaped = False
    for char in content:
        if escaped:
            escaped = False
        elif char == '\\':
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif in_string and char in "\r\n":
            char = " "
        out.append(char)
    return "".join(out)


def parse_json(content: str) -> dict | list:
    """Parse JSON from LLM response, handling code blocks and malformed JSON."""
    content = content.strip()

    # Extract from code block if present
    if content.startswith("```"):
        parts = content.split("```")
        if len(parts) >= 2:
            content = parts[1]
            if content.startswith(("json", "JSON")):
                content = content[4:]
            content = content.strip()

    # Skip any preamble; the value starts at the first '{' or '[', unless that
    # bracket is part of the prose, in which case the first '{' is tried next
    starts = sorted({i for i in (content.find('{'), content.find('[')) if i >= 0}) or [0]
    error = None
    # Matching only a leading prefix is the last resort for every start
    for allow_prefix in (False, True):
        for start in starts:
            try:
                return _repair_json(content[start:], allow_prefix)
            except json.JSONDecodeError as e:
                error = e
    raise error


def _repair_json(content: str, allow_prefix: bool = True) -> dict | list:
    content = _flatten_newlines(content)

    # Try parsing as-is first
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    # Try truncating at last closing brace/bracket
    last_brace = content.rfind('}')
    last_bracket = content.rfind(']')
    last_close = max(last_brace, last_bracket)

    if last_close > 0:
        truncated = content[:last_close + 1]
        try:
            return json.loads(truncated)
        except json.JSONDecodeError:
            pass

    if not allow_prefix:
        raise json.JSONDecodeError("No complete JSON value", content, 0)

    # Try counting braces to find structure boundaries
    open_braces = 0
    open_brackets = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(content):
        if escape_next:
            escape_next = False
            continue

        if char == '\\' and in_string:
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if not in_string:
            if char == '{':
                open_braces += 1
            elif char == '}':
                open_braces -= 1
            elif char == '[':
                open_brackets += 1
            elif char == ']':
                open_brackets -= 1

            if open_braces == 0 and open_brackets == 0 and char in ('}', ']'):
                truncated = content[:i + 1]
                try:
                    return json.loads(truncated)
                except json.JSONDecodeError:
                    pass

    raise json.JSONDecodeError(
        f"Could not parse JSON. Last 500 chars: {content[-500:]}",
        content,
        len(content) - 1
    )
