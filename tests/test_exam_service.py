"""채점/등급/결과 페이로드 테스트."""

import pytest

from conftest import make_question
from smartdriller.models.session_state import ExamHandoff
from smartdriller.services.exam_service import (
    build_result,
    build_result_payload,
    calculate_score,
    calculate_topic_scores,
    get_grade,
    get_incorrect_questions,
)


@pytest.fixture
def qs():
    return [
        make_question("a", correct=1, topic="Sets"),
        make_question("b", correct=2, topic="Sets"),
        make_question("c", correct=3, topic="Indices"),
    ]


def test_calculate_score_rounds_half_up(qs):
    assert calculate_score(qs, {"a": 1}) == 33
    assert calculate_score(qs, {"a": 1, "b": 2}) == 67
    assert calculate_score([], {}) == 0


@pytest.mark.parametrize(
    "pct, grade",
    [(100, "A"), (90, "A"), (89, "B"), (80, "B"), (70, "C"), (60, "D"), (50, "E"), (49, "F"), (0, "F")],
)
def test_get_grade(pct, grade):
    assert get_grade(pct) == grade


def test_incorrect_includes_unanswered(qs):
    wrong = get_incorrect_questions(qs, {"a": 1, "b": 4})
    assert [q.id for q in wrong] == ["b", "c"]


def test_topic_scores(qs):
    scores = calculate_topic_scores(qs, {"a": 1, "b": 3})
    assert scores == [
        {"topic": "Indices", "total": 1, "correct": 0, "incorrect": 0, "unanswered": 1, "score": 0.0},
        {"topic": "Sets", "total": 2, "correct": 1, "incorrect": 1, "unanswered": 0, "score": 50.0},
    ]


def test_build_result_counts(qs):
    result = build_result(qs, {"a": 1, "b": 3})
    assert (result.answered, result.correct, result.wrong, result.unanswered) == (2, 1, 1, 1)
    assert result.grade == "F"
    assert [o.selected_option for o in result.answers] == [1, 3, 0]


def test_build_result_payload(qs):
    handoff = ExamHandoff.model_validate({
        "course": "MTH101", "year": "2023", "examType": "mock",
        "timeAllowed": 30, "topics": "Sets,Indices",
    })
    result = build_result(qs, {"a": 1}, time_used_minutes=12)
    payload = build_result_payload(handoff, result)
    assert payload["course"] == "mth101"
    assert payload["topics"] == ["Sets", "Indices"]
    assert payload["timeAllowed"] == 30
    assert payload["timeUsed"] == 12
    assert payload["questions"][0] == {"questionId": "a", "selectedOption": 1, "isCorrect": True}
    assert payload["questions"][2]["selectedOption"] == 0
