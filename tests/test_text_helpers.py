"""음성 읽기 텍스트, 수식 분리, CSV 내보내기 테스트."""

from datetime import date

from conftest import make_question
from smartdriller.models.question_model import Course, Question
from smartdriller.services.csv_export import (
    build_csv,
    leaderboard_csv,
    leaderboard_filename,
    result_csv,
)
from smartdriller.services.exam_service import build_result
from smartdriller.services.math_text import fix_malformed_latex, split_math
from smartdriller.services.speech import clean_text, question_readback, studied_readback, utterance


# ── speech ──────────────────────────────────────────────────────────────────

def test_clean_text_strips_math():
    assert clean_text("Find $x$ if \\(x^2\\) equals $$4$$ and \\[y\\]") == "Find  if  equals  and"
    assert clean_text("\\alpha {value}") == "value"
    assert clean_text(None) == ""


def test_question_readback():
    q = Question(id="1", question="What is $2+2$ here?", options=["three", "four"], correct_option=2)
    assert question_readback(q) == "Question: What is  here?. Options: A. three. B. four."


def test_studied_readback_mentions_wrong_answer():
    q = Question(
        id="1", question="Capital of Nigeria?", options=["Lagos", "Abuja"],
        correct_option=2, explanation="Moved in 1991.",
    )
    text = studied_readback(q, user_answer=1)
    assert "The correct answer is: B. Abuja." in text
    assert "Your answer was: A. Lagos." in text
    assert text.endswith("Explanation: Moved in 1991.")
    assert "Your answer" not in studied_readback(q, user_answer=2)
    assert "Your answer" not in studied_readback(q)


def test_utterance_settings():
    assert utterance("hi") == {"text": "hi", "rate": 0.9, "pitch": 1.0, "volume": 1.0}


# ── math ────────────────────────────────────────────────────────────────────

def test_split_math_delimiters():
    segs = split_math("Solve \\(x+1\\) and \\[y\\] or $$z$$ then $w$.")
    kinds = [(s.kind, s.content, s.display) for s in segs]
    assert kinds == [
        ("text", "Solve ", False),
        ("math", "x+1", False),
        ("text", " and ", False),
        ("math", "y", True),
        ("text", " or ", False),
        ("math", "z", True),
        ("text", " then ", False),
        ("math", "w", False),
        ("text", ".", False),
    ]


def test_split_math_bare_command():
    segs = split_math("\\frac{1}{2} of it")
    assert segs[0].kind == "math"
    assert segs[0].content.startswith("\\frac{1}")
    assert segs[-1].content.endswith("of it")


def test_split_math_plain_and_empty():
    assert [s.kind for s in split_math("no math here")] == ["text"]
    assert split_math("") == []


def test_fix_malformed_latex():
    assert fix_malformed_latex("frac a b") == "\\frac{a}{b}"
    assert fix_malformed_latex("sqrt x") == "\\sqrt{x}"
    assert fix_malformed_latex("x^10") == "x^{10}"
    assert fix_malformed_latex("alpha + \\beta") == "\\alpha + \\beta"


# ── csv ─────────────────────────────────────────────────────────────────────

def test_build_csv_quotes_everything():
    out = build_csv(["a", "b"], [[1, 'say "hi"'], [None, "x,y"]])
    assert out == '"a","b"\n"1","say ""hi"""\n"","x,y"'


def test_result_csv():
    qs = [make_question("q1", correct=2), make_question("q2", correct=1)]
    result = build_result(qs, {"q1": 2})
    lines = result_csv(result, qs).split("\n")
    assert lines[0] == '"#","Question ID","Topic","Selected","Correct","Result"'
    assert lines[1] == '"1","q1","Algebra","B","B","Correct"'
    assert lines[2] == '"2","q2","Algebra","","A","Unanswered"'


def test_leaderboard_csv():
    entries = [
        {
            "rank": 1,
            "user": {"fullName": "Ada Obi", "email": "ada@x.com", "phoneNumber": "080"},
            "course": Course(name="Physics"),
            "totalScore": 90,
            "correctAnswers": 18,
            "totalQuestions": 20,
            "timeUsed": 15,
            "submittedAt": "2024-05-01T10:00:00Z",
            "isGraceSubmission": False,
            "courseScores": [{"courseCode": "phy101", "score": 95}],
        },
        {"rank": 2, "user": None},
    ]
    courses = [Course(code="phy101"), Course(code="mth101")]
    lines = leaderboard_csv(entries, courses).split("\n")
    assert lines[0].endswith('"phy101 Score (%)","mth101 Score (%)"')
    assert lines[1] == (
        '"1","Ada Obi","ada@x.com","Physics","080","","90","18","20","15",'
        '"2024-05-01 10:00:00","No","95","N/A"'
    )
    assert lines[2].startswith('"2","Unknown","","N/A"')


def test_leaderboard_filename():
    assert leaderboard_filename("Quiz Cup", date(2024, 5, 1)) == "Quiz Cup_leaderboard_2024-05-01.csv"
