"""
services/exam_service.py

시험 채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성 — UI 코드, 전역 상태 변경 없음.
"""

import math
from collections import defaultdict
from typing import Dict, List, Mapping, Optional

from smartdriller.models.question_model import Question
from smartdriller.models.session_state import ExamHandoff, QuestionOutcome, SessionResult

# (최소 백분율, 등급) — 높은 기준부터 검사
_GRADE_BANDS = [(90, "A"), (80, "B"), (70, "C"), (60, "D"), (50, "E")]


def count_correct(
    questions: List[Question],
    user_answers: Mapping[str, int],
) -> int:
    """
    정답 수를 센다.

    정답 판정 기준: user_answers.get(question.id) == question.correct_option
    응답하지 않은 문제(키 없음)는 오답으로 처리.
    """
    return sum(1 for q in questions if user_answers.get(q.id) == q.correct_option)


def calculate_score(
    questions: List[Question],
    user_answers: Mapping[str, int],
) -> int:
    """
    사용자 답안을 채점하여 100점 만점 환산 점수(정수, 반올림)를 반환한다.

    Returns:
        0 ~ 100 범위의 정수. questions가 빈 리스트이면 0.
    """
    if not questions:
        return 0
    return _round_half_up(count_correct(questions, user_answers) / len(questions) * 100)


def get_grade(percentage: float) -> str:
    """백분율 점수를 A~F 등급으로 변환한다."""
    for floor, grade in _GRADE_BANDS:
        if percentage >= floor:
            return grade
    return "F"


def get_incorrect_questions(
    questions: List[Question],
    user_answers: Mapping[str, int],
) -> List[Question]:
    """
    오답 문제 리스트를 반환한다 (오답 노트용).

    미응답 문제도 오답에 포함된다. 원본 순서 유지.
    """
    return [q for q in questions if user_answers.get(q.id) != q.correct_option]


def calculate_topic_scores(
    questions: List[Question],
    user_answers: Mapping[str, int],
) -> List[Dict[str, object]]:
    """
    토픽별 점수를 계산하여 반환한다.

    Returns:
        [{"topic": str, "total": int, "correct": int,
          "incorrect": int, "unanswered": int, "score": float}, ...]
        토픽명 기준 정렬.
    """
    buckets: Dict[str, Dict[str, int]] = defaultdict(
        lambda: {"total": 0, "correct": 0, "incorrect": 0, "unanswered": 0}
    )

    for q in questions:
        topic = q.topic or "General"
        buckets[topic]["total"] += 1

        user_ans = user_answers.get(q.id)
        if user_ans is None:
            buckets[topic]["unanswered"] += 1
        elif user_ans == q.correct_option:
            buckets[topic]["correct"] += 1
        else:
            buckets[topic]["incorrect"] += 1

    result = []
    for topic in sorted(buckets):
        b = buckets[topic]
        score = round(b["correct"] / b["total"] * 100, 1) if b["total"] else 0.0
        result.append({"topic": topic, **b, "score": score})
    return result


def build_result(
    questions: List[Question],
    user_answers: Mapping[str, int],
    time_used_minutes: Optional[int] = None,
) -> SessionResult:
    """문제 세트와 답안지로 SessionResult를 만든다."""
    outcomes = []
    for q in questions:
        selected = user_answers.get(q.id, 0)
        outcomes.append(
            QuestionOutcome(
                question_id=q.id,
                selected_option=selected,
                is_correct=selected == q.correct_option,
            )
        )

    total = len(questions)
    answered = sum(1 for o in outcomes if o.selected_option > 0)
    correct = sum(1 for o in outcomes if o.is_correct)
    percentage = calculate_score(questions, user_answers)

    return SessionResult(
        total_questions=total,
        answered=answered,
        correct=correct,
        wrong=answered - correct,
        unanswered=total - answered,
        percentage=percentage,
        grade=get_grade(percentage),
        topic_scores=calculate_topic_scores(questions, user_answers),
        answers=outcomes,
        time_used_minutes=time_used_minutes,
    )


def build_result_payload(handoff: ExamHandoff, result: SessionResult) -> Dict[str, object]:
    """
    결과 제출 API(`POST /api/results/submit`) 본문을 만든다.
    """
    return {
        "course": handoff.course.code,
        "year": handoff.year,
        "topics": handoff.topic_list,
        "totalQuestions": result.total_questions,
        "timeAllowed": handoff.time_allowed,
        "timeUsed": max(result.time_used_minutes or 0, 0),
        "questions": [
            {
                "questionId": o.question_id,
                "selectedOption": o.selected_option,
                "isCorrect": o.is_correct,
            }
            for o in result.answers
        ],
    }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
