"""
services/speech.py

음성 읽어주기(TTS)용 텍스트 생성.
수식 표기는 소리 내어 읽을 수 없으므로 지우고, 문장 형태로 이어 붙인다.
"""

import re
from typing import Optional

from smartdriller.models.question_model import Question

_STRIP_PATTERNS = [
    re.compile(r"\\\(.*?\\\)"),
    re.compile(r"\\\[.*?\\\]"),
    re.compile(r"\$\$.*?\$\$"),
    re.compile(r"\$.*?\$"),
    re.compile(r"\\[a-zA-Z]+"),
    re.compile(r"[{}]"),
]

# 브라우저 SpeechSynthesisUtterance 기본값
SPEECH_RATE = 0.9
SPEECH_PITCH = 1.0
SPEECH_VOLUME = 1.0


def clean_text(text: Optional[str]) -> str:
    """LaTeX 수식/명령/중괄호를 제거한다."""
    if not text:
        return ""
    for pattern in _STRIP_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()


def question_readback(question: Question) -> str:
    """해설 전: 문제와 보기만 읽는다."""
    text = f"Question: {clean_text(question.question)}. Options: "
    for ordinal, option in enumerate(question.options, start=1):
        text += f"{question.option_letter(ordinal)}. {clean_text(option)}. "
    return text.strip()


def studied_readback(question: Question, user_answer: Optional[int] = None) -> str:
    """해설 후: 정답, (틀렸다면) 내 답, 해설까지 읽는다."""
    correct = question.correct_option
    text = f"Question: {clean_text(question.question)}. "
    text += (
        f"The correct answer is: {question.option_letter(correct)}. "
        f"{clean_text(question.options[correct - 1])}. "
    )
    if user_answer is not None and user_answer != correct:
        text += (
            f"Your answer was: {question.option_letter(user_answer)}. "
            f"{clean_text(question.options[user_answer - 1])}. "
        )
    text += f"Explanation: {clean_text(question.explanation)}"
    return text.strip()


def utterance(text: str) -> dict:
    """화면의 speechSynthesis 호출에 그대로 넘길 설정."""
    return {"text": text, "rate": SPEECH_RATE, "pitch": SPEECH_PITCH, "volume": SPEECH_VOLUME}
