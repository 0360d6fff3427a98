"""
Pytest configuration and fixtures
"""
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from quiz_relay.config import Settings  # noqa: E402
from quiz_relay.index import create_app  # noqa: E402
from tests.support.fakes import FakeTelegramClient  # noqa: E402


@pytest.fixture
def settings():
    return Settings(
        telegram_bot_token="123456:test-token",
        teacher_chat_id="987654",
        chunk_delay_seconds=0,
        log_requests=False,
    )


@pytest.fixture
def fake_telegram():
    return FakeTelegramClient()


@pytest.fixture
def app(settings, fake_telegram):
    return create_app(settings, telegram_client_factory=lambda _settings: fake_telegram)


@pytest.fixture
def client(app):
    """Create test client"""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def submission_payload():
    return {
        "name": "Alice Johnson",
        "score": 2,
        "total": 4,
        "percentage": 50,
        "timeSpent": 125,
        "startTime": "2024-03-01T14:00:00Z",
        "endTime": "2024-03-01T14:02:05Z",
        "timestamp": "3/1/2024, 2:02:05 PM",
        "detailedResults": [
            {
                "questionNumber": 1,
                "question": "She ___ to school every day.",
                "userAnswer": "goes",
                "correctAnswer": "goes",
                "isCorrect": True,
                "explanation": "Present simple for habits.",
            },
            {
                "questionNumber": 7,
                "question": "I ___ never been to Paris.",
                "userAnswer": "has",
                "correctAnswer": "have",
                "isCorrect": False,
                "explanation": "First person takes 'have'.",
            },
            {
                "questionNumber": 12,
                "question": "You ___ wear a seatbelt.",
                "userAnswer": "must",
                "correctAnswer": "must",
                "isCorrect": True,
                "explanation": "Obligation.",
            },
            {
                "questionNumber": 15,
                "question": "If it rains, we ___ stay home.",
                "userAnswer": "Not answered",
                "correctAnswer": "will",
                "isCorrect": False,
                "explanation": "First conditional.",
            },
        ],
    }
