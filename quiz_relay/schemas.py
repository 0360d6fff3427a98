from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

NOT_ANSWERED = "Not answered"

# Browsers send either an ISO string or epoch milliseconds
TimeValue = Union[float, str]
Number = Union[int, float]


class QuestionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    question_number: int = Field(0, alias="questionNumber")
    question: str = ""
    user_answer: str = Field("", alias="userAnswer")
    correct_answer: str = Field("", alias="correctAnswer")
    is_correct: bool = Field(False, alias="isCorrect")
    explanation: str = ""

    @property
    def is_unanswered(self) -> bool:
        return self.user_answer == NOT_ANSWERED


class Submission(BaseModel):
    # NaN and Infinity cannot be echoed back as JSON
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    name: str = Field(..., min_length=1)
    score: Number = 0
    total: Number = 0
    percentage: Number = 0
    time_spent: int = Field(0, alias="timeSpent", ge=0)
    start_time: Optional[TimeValue] = Field(None, alias="startTime")
    end_time: Optional[TimeValue] = Field(None, alias="endTime")
    timestamp: Optional[str] = None
    detailed_results: List[QuestionResult] = Field(default_factory=list, alias="detailedResults")
    ip_address: Optional[str] = Field(None, alias="ipAddress")


class StudentData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    score: Number
    total: Number
    percentage: Number
    time_spent: int = Field(..., alias="timeSpent")


class SubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Test submitted successfully. Your teacher has received your results."
    student_data: StudentData = Field(..., alias="studentData")


def parse_time(value: Optional[TimeValue]) -> Optional[datetime]:
    """Interpret a client time value; returns None when it cannot be read."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
