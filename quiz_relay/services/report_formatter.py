"""
Teacher report formatting.

Turns a Submission into the Telegram message the instructor receives. The
output uses Telegram's legacy Markdown (``*bold*``, ``_italic_``) plus
box-drawing connectors and emoji, so it reads well in the chat client.

The function is pure: all times come from the submission itself, never from
the clock.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone, tzinfo
from typing import FrozenSet, List, Optional, Sequence, Tuple

from ..schemas import QuestionResult, Submission, parse_time

NOT_AVAILABLE = "Not available"
SIGNATURE = "_Sent automatically by the online test system_"

PERFORMANCE_TIERS: Tuple[Tuple[float, str], ...] = (
    (90, "🏆 EXCELLENT"),
    (75, "👍 VERY GOOD"),
    (60, "✅ GOOD"),
    (50, "📝 SATISFACTORY"),
)
LOWEST_TIER = "📚 NEEDS IMPROVEMENT"

GRADE_LADDER: Tuple[Tuple[float, str], ...] = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (45, "D+"),
    (40, "D"),
)
FAILING_GRADE = "F"

# Declaration order is rendering order. A question number belongs to at most
# one category.
TOPIC_CATEGORIES: Tuple[Tuple[str, FrozenSet[int]], ...] = (
    ("Present Simple & Continuous", frozenset({1, 2, 3})),
    ("Past Simple & Continuous", frozenset({4, 5, 6})),
    ("Present Perfect", frozenset({7, 8})),
    ("Past Perfect", frozenset({9})),
    ("Future Forms", frozenset({10, 11})),
    ("Modal Verbs", frozenset({12, 13, 14})),
    ("Conditionals", frozenset({15, 16, 17})),
    ("Passive Voice", frozenset({18, 19})),
    ("Reported Speech", frozenset({20, 21})),
    ("Relative Clauses", frozenset({22, 23})),
    ("Articles & Determiners", frozenset({24, 25})),
    ("Prepositions", frozenset({26, 27})),
    ("Comparatives & Superlatives", frozenset({28})),
    ("Gerunds & Infinitives", frozenset({29, 30})),
)

_MARKDOWN_SPECIALS = ("_", "*", "`", "[")


def performance_label(percentage: float) -> str:
    for threshold, label in PERFORMANCE_TIERS:
        if percentage >= threshold:
            return label
    return LOWEST_TIER


def letter_grade(percentage: float) -> str:
    for threshold, grade in GRADE_LADDER:
        if percentage >= threshold:
            return grade
    return FAILING_GRADE


def weak_areas(results: Sequence[QuestionResult]) -> List[str]:
    """Categories holding at least one wrong or unanswered question, in table order."""
    missed = {r.question_number for r in results if not r.is_correct or r.is_unanswered}
    return [label for label, numbers in TOPIC_CATEGORIES if numbers & missed]


def escape_markdown(text: str) -> str:
    for char in _MARKDOWN_SPECIALS:
        text = text.replace(char, "\\" + char)
    return text


def format_number(value: float) -> str:
    """Render 92.0 as ``92`` and 92.5 as ``92.5``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(seconds: int) -> str:
    return f"{seconds // 60} minutes {seconds % 60} seconds"


def format_time_of_day(value: Optional[datetime], tz: tzinfo) -> str:
    if value is None:
        return NOT_AVAILABLE
    local = value.astimezone(tz)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d}:{local.second:02d} {suffix}"


def _render_correct(results: Sequence[QuestionResult]) -> List[str]:
    lines = [f"✅ *CORRECT ANSWERS ({len(results)})*", ""]
    for r in results:
        lines.append(f"*{r.question_number}.* {escape_markdown(r.question)}")
        connector = "├─" if r.explanation else "└─"
        lines.append(f"{connector} ✔️ Answer: {escape_markdown(r.user_answer)}")
        if r.explanation:
            lines.append(f"└─ 💡 {escape_markdown(r.explanation)}")
        lines.append("")
    return lines


def _render_with_correction(title: str, answer_icon: str, results: Sequence[QuestionResult]) -> List[str]:
    lines = [f"{title} ({len(results)})*", ""]
    for r in results:
        lines.append(f"*{r.question_number}.* {escape_markdown(r.question)}")
        lines.append(f"├─ {answer_icon} Student answer: {escape_markdown(r.user_answer)}")
        connector = "├─" if r.explanation else "└─"
        lines.append(f"{connector} ✔️ Correct answer: {escape_markdown(r.correct_answer)}")
        if r.explanation:
            lines.append(f"└─ 💡 {escape_markdown(r.explanation)}")
        lines.append("")
    return lines


def _render_summary(
    results: Sequence[QuestionResult],
    correct: int,
    incorrect: int,
    unanswered: int,
    time_spent: int,
) -> List[str]:
    count = len(results)
    if count:
        accuracy = f"{round_half_up(correct / count * 100)}%"
        average = f"{round_half_up(time_spent / count)} seconds"
    else:
        accuracy = "n/a"
        average = "n/a"

    lines = [
        "📊 *SUMMARY*",
        f"├─ ✅ Correct: {correct}",
        f"├─ ❌ Incorrect: {incorrect}",
    ]
    if unanswered:
        lines.append(f"├─ ⚠️ Unanswered: {unanswered}")
    lines.append(f"├─ 🎯 Accuracy: {accuracy}")
    lines.append(f"└─ ⏱️ Average time per question: {average}")
    lines.append("")
    return lines


def format_teacher_report(submission: Submission, tz: tzinfo = timezone.utc) -> str:
    """
    Build the instructor report for one submission.

    Args:
        submission: Validated submission, with ``ip_address`` already resolved.
        tz: Timezone used to render the start and submit times of day.

    Returns:
        The complete report as a single string.
    """
    percentage = submission.percentage
    results = submission.detailed_results

    correct = [r for r in results if r.is_correct]
    incorrect = [r for r in results if not r.is_correct]
    # Independent of is_correct: an unanswered item is usually also incorrect
    unanswered = [r for r in results if r.is_unanswered]

    lines = [
        "👨‍🏫 *NEW TEST SUBMISSION - TEACHER REPORT* 👨‍🏫",
        "",
        "📋 *STUDENT INFORMATION*",
        f"├─ 👤 *Name:* {escape_markdown(submission.name)}",
        f"├─ 🌐 *IP Address:* {escape_markdown(submission.ip_address or NOT_AVAILABLE)}",
        f"├─ 🕐 *Started:* {format_time_of_day(parse_time(submission.start_time), tz)}",
        f"└─ 🕐 *Submitted:* {format_time_of_day(parse_time(submission.end_time), tz)}",
        "",
        "📊 *TEST RESULTS*",
        f"├─ 🎯 *Score:* {format_number(submission.score)}/{format_number(submission.total)}",
        f"├─ 📈 *Percentage:* {format_number(percentage)}%",
        f"├─ ⏱️ *Time Taken:* {format_duration(submission.time_spent)}",
        f"├─ 📝 *Grade:* {letter_grade(percentage)}",
        f"└─ {performance_label(percentage)}",
        "",
        "📝 *QUESTION-BY-QUESTION ANALYSIS*",
        "",
    ]

    if correct:
        lines.extend(_render_correct(correct))
    if incorrect:
        lines.extend(_render_with_correction("❌ *INCORRECT ANSWERS", "✖️", incorrect))
    if unanswered:
        lines.extend(_render_with_correction("⚠️ *UNANSWERED QUESTIONS", "➖", unanswered))

    lines.extend(
        _render_summary(results, len(correct), len(incorrect), len(unanswered), submission.time_spent)
    )

    areas = weak_areas(results)
    if areas:
        lines.append("🎯 *NEEDS IMPROVEMENT*")
        for index, label in enumerate(areas):
            connector = "└─" if index == len(areas) - 1 else "├─"
            lines.append(f"{connector} {escape_markdown(label)}")
        lines.append("")

    lines.append(f"🕒 *Report time:* {escape_markdown(submission.timestamp or NOT_AVAILABLE)}")
    lines.append(SIGNATURE)
    return "\n".join(lines)
