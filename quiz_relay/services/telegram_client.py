"""
Telegram Bot API delivery.

Reports can be longer than a single Telegram message allows, so the text is
split into chunks below the API limit and sent one after another with a short
pause in between.

Usage:
    client = TelegramClient(bot_token)
    ok = client.send_message(chat_id, report)
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

import requests

from ..config import (
    DEFAULT_API_BASE,
    DEFAULT_CHUNK_DELAY_SECONDS,
    DEFAULT_MAX_MESSAGE_LENGTH,
    DEFAULT_REQUEST_TIMEOUT,
    Settings,
)

logger = logging.getLogger(__name__)

# A newline break is taken only if it keeps at least this share of a full chunk
NEWLINE_BREAK_RATIO = 0.8


def split_message(text: str, limit: int = DEFAULT_MAX_MESSAGE_LENGTH) -> List[str]:
    """
    Split text into chunks of at most ``limit`` characters.

    Breaks on the last newline of a window when that keeps the chunk longer
    than 80% of ``limit``; the newline is consumed as the separator. Otherwise
    the chunk is cut at exactly ``limit`` characters.
    """
    if limit < 1:
        raise ValueError("limit must be positive")
    if len(text) <= limit:
        return [text]

    chunks = []
    start = 0
    while start < len(text):
        end = start + limit
        next_start = end
        if end < len(text):
            newline = text.rfind("\n", start, end)
            if newline > start + limit * NEWLINE_BREAK_RATIO:
                end = newline
                next_start = newline + 1
        chunks.append(text[start:end])
        start = next_start
    return chunks


def with_part_markers(chunks: List[str]) -> List[str]:
    if len(chunks) <= 1:
        return list(chunks)
    total = len(chunks)
    return [f"📄 *Part {i}/{total}*\n\n{chunk}" for i, chunk in enumerate(chunks, start=1)]


def _error_description(exc: requests.exceptions.RequestException) -> Optional[str]:
    """Pull Telegram's ``description`` out of an error response, if there is one."""
    response = exc.response
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        return body.get("description")
    return None


class TelegramClient:
    """Sends text messages through the Telegram Bot API ``sendMessage`` method."""

    def __init__(
        self,
        bot_token: Optional[str],
        *,
        api_base: str = DEFAULT_API_BASE,
        max_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        chunk_delay: float = DEFAULT_CHUNK_DELAY_SECONDS,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.max_length = max_length
        self.chunk_delay = chunk_delay
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelegramClient":
        return cls(
            settings.telegram_bot_token,
            api_base=settings.telegram_api_base,
            max_length=settings.max_message_length,
            chunk_delay=settings.chunk_delay_seconds,
            timeout=settings.request_timeout,
        )

    @property
    def send_url(self) -> str:
        return f"{self.api_base}/bot{self.bot_token}/sendMessage"

    def _post(self, chat_id: str, text: str) -> None:
        response = requests.post(
            self.send_url,
            json={
                "chat_id": chat_id,
                "text": text,
                "parse_mode": "Markdown",
                "disable_web_page_preview": True,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()

    def send_message(self, chat_id: str, text: str) -> bool:
        """
        Deliver ``text`` to ``chat_id``, splitting it when needed.

        Stops at the first chunk that fails. Chunks sent before the failure
        stay delivered.

        Returns:
            True only if every chunk was accepted by Telegram.
        """
        if not self.bot_token:
            logger.error("Telegram bot token is not configured, cannot send message")
            return False

        parts = with_part_markers(split_message(text, self.max_length))
        total = len(parts)
        for index, part in enumerate(parts, start=1):
            try:
                self._post(chat_id, part)
            except requests.exceptions.RequestException as e:
                description = _error_description(e)
                if description:
                    logger.error(f"Telegram API error on part {index}/{total}: {description}")
                # The token is part of the URL, keep it out of the log
                message = str(e).replace(self.bot_token, "[REDACTED]")
                logger.error(f"Error sending message to Telegram: {message}")
                return False

            logger.debug(f"Sent part {index}/{total} to Telegram chat")
            if index < total:
                time.sleep(self.chunk_delay)

        logger.info(f"✅ Report delivered to Telegram in {total} part(s)")
        return True
