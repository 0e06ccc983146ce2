"""External parser interface and Anthropic implementation.

Defines the MessageParser protocol for turning raw bank message text into
a best-effort structured guess, plus two implementations:
- AnthropicParser: sends the message to the Anthropic Messages API via
  an httpx async client.
- NullParser: always fails (for --no-llm mode).

A parser returns a plain dict with the keys ``amount``, ``type``, ``bank``,
``date`` and ``time`` (any of which may be missing) or raises
:class:`~sms_ledger.errors.ParserRejectedError`. Deciding whether the dict
is complete enough is the pipeline's job, not the parser's.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Protocol

import httpx

from sms_ledger.errors import ParserRejectedError

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"

PARSED_KEYS = ("amount", "type", "bank", "date", "time")


class MessageParser(Protocol):
    """Protocol for the external message-understanding capability."""

    async def parse(self, text: str) -> dict:
        """Extract a candidate transaction from *text*.

        Args:
            text: The raw bank notification.

        Returns:
            Dict with any of the keys amount, type, bank, date, time.

        Raises:
            ParserRejectedError: If no usable answer could be obtained.
        """
        ...


def _build_prompt(text: str) -> str:
    """Construct the extraction prompt for one bank message."""
    return (
        "You are reading a bank SMS notification. Extract the transaction it describes.\n"
        "\n"
        "## Message\n"
        f"{text}\n"
        "\n"
        "## Response Format\n"
        "Return a single JSON object:\n"
        '{"amount": 0, "type": "income" | "expense", "bank": "...", '
        '"date": "YYYY-MM-DD", "time": "HH:MM"}\n'
        "\n"
        "amount is a plain number without thousands separators or currency.\n"
        'type is "income" for deposits and transfers in, "expense" for withdrawals,\n'
        "purchases and transfers out.\n"
        "Convert Solar Hijri (Persian calendar) dates to Gregorian.\n"
        "Use null for any field the message does not contain."
    )


def _parse_response(text: str) -> dict:
    """Extract the JSON object from the model's response text.

    The model may wrap the JSON in code fences or add prose around it, so
    this takes everything between the first ``{`` and the last ``}``.

    Raises:
        ParserRejectedError: If no JSON object can be decoded.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise ParserRejectedError("Parser response does not contain a JSON object")

    try:
        result = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ParserRejectedError(f"Failed to decode parser response: {exc}") from exc

    if not isinstance(result, dict):
        raise ParserRejectedError("Parser response JSON is not an object")

    return {key: result.get(key) for key in PARSED_KEYS}


class AnthropicParser:
    """Message parser that calls the Anthropic Messages API via httpx.

    Reads the API key from the environment variable named by
    ``api_key_env``, sends one prompt per message, and decodes the JSON
    object in the reply. Every failure (missing key, timeout, HTTP error,
    unreadable reply) raises :class:`ParserRejectedError`.

    Args:
        model: The Anthropic model identifier.
        api_key_env: Name of the environment variable containing the API key.
        max_tokens: Maximum tokens in the response. Default: 1024.
        timeout: HTTP request timeout in seconds. Default: 30.
        transport: Optional httpx transport, for tests.
    """

    def __init__(
        self,
        model: str,
        api_key_env: str,
        max_tokens: int = 1024,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self.api_key_env = api_key_env
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.transport = transport

    async def parse(self, text: str) -> dict:
        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            raise ParserRejectedError(
                f"Parser API key not found in environment variable '{self.api_key_env}'"
            )

        request_body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": _build_prompt(text),
                }
            ],
        }

        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    ANTHROPIC_API_URL,
                    json=request_body,
                    headers=headers,
                )
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ParserRejectedError("Parser request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise ParserRejectedError(
                f"Parser API returned HTTP {exc.response.status_code}: "
                f"{exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ParserRejectedError(f"Parser request failed: {exc}") from exc

        # Extract text from the Anthropic response format
        try:
            body = response.json()
            text_parts = [
                block["text"]
                for block in body.get("content", [])
                if block.get("type") == "text"
            ]
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            raise ParserRejectedError(f"Failed to read parser response: {exc}") from exc

        response_text = "\n".join(text_parts)
        if not response_text:
            raise ParserRejectedError("Parser response contained no text content")

        logger.debug("Parser replied: %s", response_text)
        return _parse_response(response_text)


class NullParser:
    """No-op parser for --no-llm mode. Every parse fails."""

    async def parse(self, text: str) -> dict:
        raise ParserRejectedError("Message parsing is disabled")
