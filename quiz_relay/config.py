"""
Process-wide configuration for the quiz relay.

Settings are read once at startup from environment variables (a `.env` file in
the project root is loaded first when present) and handed to the application
factory. Nothing else in the package reads the environment directly.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"
TELEGRAM_HARD_LIMIT = 4096
# Room for the "📄 *Part i/N*" line prepended to multi-part messages
PART_MARKER_HEADROOM = 32
MAX_CHUNK_LENGTH = TELEGRAM_HARD_LIMIT - PART_MARKER_HEADROOM
DEFAULT_MAX_MESSAGE_LENGTH = 4000
DEFAULT_CHUNK_DELAY_SECONDS = 0.5
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: Optional[str] = None
    teacher_chat_id: Optional[str] = None
    telegram_api_base: str = DEFAULT_API_BASE
    max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH
    chunk_delay_seconds: float = DEFAULT_CHUNK_DELAY_SECONDS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    report_timezone: str = DEFAULT_TIMEZONE
    log_level: str = "INFO"
    log_requests: bool = True
    cloudwatch_log_group: Optional[str] = None
    aws_region: str = "us-east-1"

    @property
    def has_telegram_credentials(self) -> bool:
        return bool(self.telegram_bot_token) and bool(self.teacher_chat_id)

    def __post_init__(self):
        # Unknown zones fall back to UTC once, at construction
        try:
            ZoneInfo(self.report_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                f"Unknown REPORT_TIMEZONE '{self.report_timezone}'. Using default: {DEFAULT_TIMEZONE}"
            )
            object.__setattr__(self, "report_timezone", DEFAULT_TIMEZONE)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.report_timezone)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_int(env: Mapping[str, str], name: str, default: int, minimum: int, maximum: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid {name} value: {raw}. Error: {e}. Using default: {default}")
        return default
    if value < minimum or value > maximum:
        logger.warning(
            f"{name} value {value} is outside [{minimum}, {maximum}]. Using default: {default}"
        )
        return default
    return value


def _parse_float(env: Mapping[str, str], name: str, default: float, *, allow_zero: bool) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid {name} value: {raw}. Error: {e}. Using default: {default}")
        return default
    if value < 0 or (value == 0 and not allow_zero):
        logger.warning(f"Invalid {name} value: {raw}. Must be positive. Using default: {default}")
        return default
    return value


def load_settings(env: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> Settings:
    """
    Build a Settings object from the environment.

    Args:
        env: Mapping to read from instead of ``os.environ`` (used by tests).
        dotenv: Load a project-level ``.env`` file into ``os.environ`` first.
            Ignored when ``env`` is given.
    """
    if env is None:
        if dotenv:
            env_path = Path(__file__).resolve().parent.parent / ".env"
            if env_path.exists():
                # utf-8-sig tolerates a BOM written by some editors
                load_dotenv(env_path, encoding="utf-8-sig")
            else:
                load_dotenv()
        env = os.environ

    settings = Settings(
        telegram_bot_token=_clean(env.get("TELEGRAM_BOT_TOKEN")),
        teacher_chat_id=_clean(env.get("TELEGRAM_TEACHER_CHAT_ID")),
        telegram_api_base=(_clean(env.get("TELEGRAM_API_BASE")) or DEFAULT_API_BASE).rstrip("/"),
        max_message_length=_parse_int(
            env, "TELEGRAM_MAX_MESSAGE_LENGTH", DEFAULT_MAX_MESSAGE_LENGTH, 1, MAX_CHUNK_LENGTH
        ),
        chunk_delay_seconds=_parse_float(
            env, "TELEGRAM_CHUNK_DELAY_SECONDS", DEFAULT_CHUNK_DELAY_SECONDS, allow_zero=True
        ),
        request_timeout=_parse_float(
            env, "TELEGRAM_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, allow_zero=False
        ),
        report_timezone=_clean(env.get("REPORT_TIMEZONE")) or DEFAULT_TIMEZONE,
        log_level=(_clean(env.get("LOG_LEVEL")) or "INFO").upper(),
        log_requests=(env.get("LOG_REQUESTS", "true").strip().lower() not in ("false", "0", "no")),
        cloudwatch_log_group=_clean(env.get("CLOUDWATCH_LOG_GROUP")),
        aws_region=_clean(env.get("AWS_REGION")) or "us-east-1",
    )

    if not settings.has_telegram_credentials:
        # Do not say which one; submissions will fail with a configuration error
        logger.warning("Telegram credentials are not fully configured")

    return settings
