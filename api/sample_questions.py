"""
api/sample_questions.py — 서버 연결 없이 체험할 수 있는 예시 시험
"""

SAMPLE_COURSE = {"_id": "", "code": "mth101", "name": "MTH101 - Elementary Mathematics I"}

SAMPLE_QUESTIONS = [
    {
        "_id": "sample-1",
        "question": "Simplify $\\frac{6}{8}$.",
        "options": ["$\\frac{2}{3}$", "$\\frac{3}{4}$", "$\\frac{4}{5}$", "$\\frac{1}{2}$"],
        "correctOption": 2,
        "explanation": "Divide numerator and denominator by 2.",
        "topic": "Fractions",
        "year": "2023",
        "course": "mth101",
    },
    {
        "_id": "sample-2",
        "question": "Solve for $x$: $2x + 3 = 11$.",
        "options": ["3", "4", "5", "7"],
        "correctOption": 2,
        "explanation": "Subtract 3 from both sides, then divide by 2: $x = 4$.",
        "topic": "Linear Equations",
        "year": "2023",
        "course": "mth101",
    },
    {
        "_id": "sample-3",
        "question": "What is $\\sqrt{81}$?",
        "options": ["7", "8", "9", "18"],
        "correctOption": 3,
        "explanation": "$9 \\times 9 = 81$.",
        "topic": "Indices and Surds",
        "year": "2023",
        "course": "mth101",
    },
    {
        "_id": "sample-4",
        "question": "If $A = \\{1, 2, 3\\}$ and $B = \\{2, 3, 4\\}$, what is $A \\cap B$?",
        "options": ["$\\{1\\}$", "$\\{2, 3\\}$", "$\\{1, 2, 3, 4\\}$", "$\\{4\\}$"],
        "correctOption": 2,
        "explanation": "The intersection holds the elements common to both sets.",
        "topic": "Sets",
        "year": "2023",
        "course": "mth101",
    },
    {
        "_id": "sample-5",
        "question": "Evaluate $3^4$.",
        "options": ["12", "27", "64", "81"],
        "correctOption": 4,
        "explanation": "$3 \\times 3 \\times 3 \\times 3 = 81$.",
        "topic": "Indices and Surds",
        "year": "2023",
        "course": "mth101",
    },
]

SAMPLE_TIME_ALLOWED = 10  # 분


def sample_handoff(exam_type: str = "study") -> dict:
    handoff = {
        "course": SAMPLE_COURSE,
        "year": "2023",
        "examType": exam_type,
        "topics": "all",
        "questions": SAMPLE_QUESTIONS,
    }
    if exam_type == "mock":
        handoff["timeAllowed"] = SAMPLE_TIME_ALLOWED
    return handoff
