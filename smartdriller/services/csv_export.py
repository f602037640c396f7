"""
services/csv_export.py

표 데이터를 CSV 문자열로 만든다 (결과 상세 / 대회 리더보드 내보내기).
모든 셀을 큰따옴표로 감싼다.
"""

import csv
import io
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from smartdriller.models.question_model import Course, Question
from smartdriller.models.session_state import SessionResult

LEADERBOARD_HEADERS = [
    "Rank",
    "Name",
    "Email",
    "Course",
    "Phone",
    "Account Number",
    "Total Score (%)",
    "Correct Answers",
    "Total Questions",
    "Time Used (min)",
    "Submission Time",
    "Grace Submission",
]


def build_csv(headers: Sequence[Any], rows: Iterable[Sequence[Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if cell is None else cell for cell in row])
    return buf.getvalue().rstrip("\n")


def result_csv(result: SessionResult, questions: List[Question]) -> str:
    """문제별 채점 내역."""
    by_id = {q.id: q for q in questions}
    rows = []
    for number, outcome in enumerate(result.answers, start=1):
        q = by_id.get(outcome.question_id)
        if outcome.selected_option == 0:
            verdict = "Unanswered"
        else:
            verdict = "Correct" if outcome.is_correct else "Wrong"
        rows.append([
            number,
            outcome.question_id,
            (q.topic if q else "") or "",
            q.option_letter(outcome.selected_option) if q and outcome.selected_option else "",
            q.option_letter(q.correct_option) if q else "",
            verdict,
        ])
    return build_csv(["#", "Question ID", "Topic", "Selected", "Correct", "Result"], rows)


def leaderboard_csv(entries: List[Dict[str, Any]], courses: List[Course]) -> str:
    """
    대회 리더보드 내보내기. 코스별 점수 열은 courses 순서대로 붙고,
    해당 코스 점수가 없으면 "N/A".
    """
    headers = LEADERBOARD_HEADERS + [f"{c.code} Score (%)" for c in courses]
    rows = []
    for entry in entries:
        user = entry.get("user") or {}
        course = entry.get("course")
        course_name = course.name if isinstance(course, Course) else "N/A"
        scores = {cs.get("courseCode"): cs.get("score") for cs in entry.get("courseScores") or []}
        rows.append([
            entry.get("rank"),
            user.get("fullName") or "Unknown",
            user.get("email") or "",
            course_name,
            user.get("phoneNumber") or "",
            user.get("accountNumber") or "",
            entry.get("totalScore"),
            entry.get("correctAnswers"),
            entry.get("totalQuestions"),
            entry.get("timeUsed"),
            _format_time(entry.get("submittedAt")),
            "Yes" if entry.get("isGraceSubmission") else "No",
            *[scores.get(c.code, "N/A") for c in courses],
        ])
    return build_csv(headers, rows)


def leaderboard_filename(competition_name: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{competition_name}_leaderboard_{today.isoformat()}.csv"


def _format_time(value: Any) -> str:
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return parsed.strftime("%Y-%m-%d %H:%M:%S")
