"""
Tests for the /api/submit-test endpoint
"""
import logging
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from quiz_relay.config import Settings
from quiz_relay.index import create_app
from quiz_relay.routes.submit import SUBMIT_PATH

from tests.support.fakes import FakeTelegramClient

CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-allow-credentials": "true",
    "access-control-allow-methods": "POST, OPTIONS",
    "access-control-allow-headers": "Content-Type",
}


def _client_for(settings, telegram=None):
    telegram = telegram or FakeTelegramClient()
    app = create_app(settings, telegram_client_factory=lambda _settings: telegram)
    return TestClient(app, raise_server_exceptions=False), telegram


class TestPreflightAndMethods:
    def test_options_returns_empty_200(self, client):
        response = client.options(SUBMIT_PATH)

        assert response.status_code == 200
        assert response.content == b""
        for header, value in CORS_HEADERS.items():
            assert response.headers[header] == value

    def test_options_ignores_missing_configuration(self):
        client, _ = _client_for(Settings(log_requests=False))

        response = client.options(SUBMIT_PATH)

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE"])
    def test_other_methods_not_allowed(self, client, method):
        response = client.request(method, SUBMIT_PATH)

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unrouted_method_gets_same_405_body(self, client):
        response = client.request("TRACE", SUBMIT_PATH)

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert "POST" in response.headers["allow"]
        for header, value in CORS_HEADERS.items():
            assert response.headers[header] == value

    def test_unknown_path_is_still_404(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404


class TestValidation:
    def test_missing_name(self, client, fake_telegram, submission_payload):
        del submission_payload["name"]

        response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Name is required"}
        assert fake_telegram.sent == []

    def test_empty_name(self, client, submission_payload):
        submission_payload["name"] = ""

        response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 400
        assert response.json()["error"] == "Name is required"

    def test_body_is_not_json(self, client):
        response = client.post(
            SUBMIT_PATH, content=b"name=Alice", headers={"Content-Type": "application/x-www-form-urlencoded"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid submission payload"}

    def test_body_is_not_an_object(self, client):
        response = client.post(SUBMIT_PATH, json=["Alice"])

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_wrong_field_type(self, client, submission_payload):
        submission_payload["detailedResults"] = "none"

        response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid submission payload"}

    @pytest.mark.parametrize(
        "body",
        [
            b'{"name": "Alice", "percentage": NaN}',
            b'{"name": "Alice", "score": Infinity}',
            b'{"name": "Alice", "detailedResults": [{"questionNumber": -Infinity}]}',
        ],
    )
    def test_non_finite_numbers_rejected(self, client, fake_telegram, body):
        response = client.post(SUBMIT_PATH, content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid submission payload"}
        assert response.headers["access-control-allow-origin"] == "*"
        assert fake_telegram.sent == []


class TestConfiguration:
    @pytest.mark.parametrize(
        "settings",
        [
            Settings(teacher_chat_id="1", log_requests=False),
            Settings(telegram_bot_token="t", log_requests=False),
            Settings(log_requests=False),
        ],
    )
    def test_missing_secret_is_server_error(self, settings, submission_payload, caplog):
        client, telegram = _client_for(settings)

        with caplog.at_level(logging.ERROR):
            response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Server configuration error"}
        assert telegram.sent == []
        assert "Missing Telegram configuration" in caplog.text
        assert "TELEGRAM_BOT_TOKEN" not in caplog.text
        assert "TELEGRAM_TEACHER_CHAT_ID" not in caplog.text

    @patch("quiz_relay.services.telegram_client.requests.post")
    def test_missing_secret_never_calls_telegram(self, mock_post, submission_payload):
        app = create_app(Settings(teacher_chat_id="1", log_requests=False))
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 500
        mock_post.assert_not_called()


class TestSubmission:
    def test_success_echoes_student_data(self, client, fake_telegram, submission_payload):
        response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Test submitted successfully. Your teacher has received your results.",
            "studentData": {
                "name": "Alice Johnson",
                "score": 2,
                "total": 4,
                "percentage": 50,
                "timeSpent": 125,
            },
        }
        assert response.headers["access-control-allow-origin"] == "*"

        assert len(fake_telegram.sent) == 1
        chat_id, report = fake_telegram.sent[0]
        assert chat_id == "987654"
        assert "*Name:* Alice Johnson" in report

    def test_forwarded_for_wins(self, client, fake_telegram, submission_payload):
        client.post(
            SUBMIT_PATH,
            json=submission_payload,
            headers={"X-Forwarded-For": "198.51.100.1, 10.0.0.1", "X-Real-IP": "192.0.2.9"},
        )

        assert "*IP Address:* 198.51.100.1, 10.0.0.1" in fake_telegram.sent[0][1]

    def test_real_ip_used_without_forwarded_for(self, client, fake_telegram, submission_payload):
        client.post(SUBMIT_PATH, json=submission_payload, headers={"X-Real-IP": "192.0.2.9"})

        assert "*IP Address:* 192.0.2.9" in fake_telegram.sent[0][1]

    def test_connection_address_fallback(self, client, fake_telegram, submission_payload):
        client.post(SUBMIT_PATH, json=submission_payload)

        # Starlette's TestClient reports its peer as "testclient"
        assert "*IP Address:* testclient" in fake_telegram.sent[0][1]

    def test_client_supplied_ip_is_replaced(self, client, fake_telegram, submission_payload):
        submission_payload["ipAddress"] = "1.1.1.1"

        client.post(SUBMIT_PATH, json=submission_payload, headers={"X-Real-IP": "192.0.2.9"})

        report = fake_telegram.sent[0][1]
        assert "1.1.1.1" not in report
        assert "*IP Address:* 192.0.2.9" in report

    def test_summary_is_logged(self, client, submission_payload, caplog):
        with caplog.at_level(logging.INFO, logger="quiz_relay.routes.submit"):
            client.post(SUBMIT_PATH, json=submission_payload, headers={"X-Real-IP": "192.0.2.9"})

        line = next(r.getMessage() for r in caplog.records if "Test submitted by student" in r.getMessage())
        assert "name='Alice Johnson'" in line
        assert "score=2/4" in line
        assert "percentage=50" in line
        assert "timeSpent=2m 5s" in line
        assert "ip=192.0.2.9" in line

    def test_delivery_failure(self, settings, submission_payload):
        client, telegram = _client_for(settings, FakeTelegramClient(succeed=False))

        response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to send report to teacher"}
        assert len(telegram.sent) == 1

    @patch("quiz_relay.routes.submit.format_teacher_report")
    def test_unexpected_error_is_generic(self, mock_format, client, submission_payload, caplog):
        mock_format.side_effect = KeyError("secret internals")

        with caplog.at_level(logging.ERROR):
            response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error. Please try again."}
        assert "secret internals" not in response.text
        assert "secret internals" in caplog.text

    @patch("quiz_relay.services.telegram_client.time.sleep")
    @patch("quiz_relay.services.telegram_client.requests.post")
    def test_end_to_end_with_real_client(self, mock_post, mock_sleep, submission_payload):
        mock_post.return_value.raise_for_status.return_value = None
        app = create_app(Settings(telegram_bot_token="123:abc", teacher_chat_id="42", log_requests=False))
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post(SUBMIT_PATH, json=submission_payload)

        assert response.status_code == 200
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.telegram.org/bot123:abc/sendMessage"
        assert kwargs["json"]["chat_id"] == "42"
        assert kwargs["json"]["parse_mode"] == "Markdown"
        assert kwargs["json"]["disable_web_page_preview"] is True
