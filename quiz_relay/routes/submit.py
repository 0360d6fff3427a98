from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pydantic
from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from ..config import Settings
from ..errors import (
    ConfigError,
    DeliveryError,
    InternalError,
    MethodNotAllowedError,
    RelayError,
    ValidationError,
)
from ..schemas import StudentData, Submission, SubmitResponse
from ..services.report_formatter import format_teacher_report
from ..services.telegram_client import TelegramClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Submissions"])

SUBMIT_PATH = "/api/submit-test"
# Everything is routed here so unsupported methods get our 405 body
ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def resolve_client_ip(request: Request) -> str | None:
    """X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_telegram_client(request: Request, settings: Settings) -> TelegramClient:
    return request.app.state.telegram_client_factory(settings)


def _reject_constant(token: str):
    raise ValueError(f"Non-standard JSON constant: {token}")


async def _read_payload(request: Request) -> dict:
    body = await request.body()
    try:
        # NaN and Infinity are not JSON; json.loads would accept them
        payload = json.loads(body, parse_constant=_reject_constant) if body else {}
    except (ValueError, UnicodeDecodeError):
        raise ValidationError()
    if not isinstance(payload, dict):
        raise ValidationError()
    return payload


def _format_minutes(seconds: int) -> str:
    return f"{seconds // 60}m {seconds % 60}s"


@router.api_route(SUBMIT_PATH, methods=ROUTED_METHODS, response_model=SubmitResponse)
async def submit_test(request: Request):
    if request.method == "OPTIONS":
        return Response(status_code=200)
    if request.method != "POST":
        raise MethodNotAllowedError()

    try:
        payload = await _read_payload(request)
        if not payload.get("name"):
            raise ValidationError("Name is required")

        ip_address = resolve_client_ip(request)
        payload["ipAddress"] = ip_address
        try:
            submission = Submission.model_validate(payload)
        except pydantic.ValidationError as e:
            logger.info(f"Submission rejected: {e.error_count()} invalid field(s)")
            raise ValidationError() from e

        settings = get_settings(request)
        if not settings.has_telegram_credentials:
            logger.error("Missing Telegram configuration, cannot deliver submission report")
            raise ConfigError()

        report = format_teacher_report(submission, tz=settings.tzinfo)
        client = get_telegram_client(request, settings)
        delivered = await run_in_threadpool(client.send_message, settings.teacher_chat_id, report)
        if not delivered:
            raise DeliveryError()

        logger.info(
            "Test submitted by student: "
            f"name={submission.name!r} "
            f"score={submission.score}/{submission.total} "
            f"percentage={submission.percentage} "
            f"timeSpent={_format_minutes(submission.time_spent)} "
            f"timestamp={datetime.now(timezone.utc).isoformat()} "
            f"ip={ip_address}"
        )

        return SubmitResponse(
            student_data=StudentData(
                name=submission.name,
                score=submission.score,
                total=submission.total,
                percentage=submission.percentage,
                time_spent=submission.time_spent,
            )
        )
    except RelayError:
        raise
    except Exception as e:
        logger.exception(f"Error submitting test: {e}")
        raise InternalError() from e
