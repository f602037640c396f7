"""
services/math_text.py

문제/보기/해설 문자열을 일반 텍스트와 LaTeX 수식 조각으로 나눈다.
화면(KaTeX 등)은 조각 목록을 받아 kind 에 따라 렌더링만 하면 된다.
"""

import re
from typing import Dict, List

from pydantic import BaseModel

# 캡처 그룹 하나 → re.split 결과의 홀수 인덱스가 수식
_MATH_PATTERN = re.compile(
    r"(\\\(.*?\\\)|\\\[.*?\\\]|\$\$.*?\$\$|\$.*?\$|\\[a-zA-Z]+\{.*?\}|\\[a-zA-Z]+)"
)

# (시작, 끝, display 여부) — 긴 구분자부터 검사
_DELIMITERS = [
    ("\\(", "\\)", False),
    ("\\[", "\\]", True),
    ("$$", "$$", True),
    ("$", "$", False),
]

_SYMBOL_WORDS = (
    "alpha", "beta", "gamma", "delta", "epsilon", "theta", "lambda", "mu",
    "pi", "rho", "sigma", "phi", "psi", "omega", "leq", "geq", "neq",
    "cap", "cup", "infty", "partial", "sum", "times", "div", "cdot", "pm",
)
_SYMBOL_RE = re.compile(r"(?<![\\a-zA-Z])(" + "|".join(_SYMBOL_WORDS) + r")\b")
_FRAC_RE = re.compile(r"(?<!\\)\bfrac\s+(\S+)\s+(\S+)")
_SQRT_RE = re.compile(r"(?<!\\)\bsqrt\s+(\S+)")
_POWER_RE = re.compile(r"\^(\d+)")


class Segment(BaseModel):
    kind: str  # "text" | "math"
    content: str
    display: bool = False


def fix_malformed_latex(latex: str) -> str:
    """
    백슬래시가 빠진 흔한 표기를 고친다.
    "frac a b" → \\frac{a}{b}, "sqrt x" → \\sqrt{x}, "x^10" → x^{10}, "alpha" → \\alpha
    """
    fixed = _FRAC_RE.sub(r"\\frac{\1}{\2}", latex)
    fixed = _SQRT_RE.sub(r"\\sqrt{\1}", fixed)
    fixed = _POWER_RE.sub(r"^{\1}", fixed)
    return _SYMBOL_RE.sub(r"\\\1", fixed)


def split_math(content: str) -> List[Segment]:
    """
    문자열을 순서대로 Segment 리스트로 나눈다. 빈 텍스트 조각은 버린다.

    >>> [s.kind for s in split_math("Solve $x+1=2$ now")]
    ['text', 'math', 'text']
    """
    if not content:
        return []

    segments: List[Segment] = []
    for i, part in enumerate(_MATH_PATTERN.split(content)):
        if i % 2 == 0:
            if part:
                segments.append(Segment(kind="text", content=part))
            continue
        segments.append(_math_segment(part))
    return segments


def _math_segment(part: str) -> Segment:
    for start, end, display in _DELIMITERS:
        if part.startswith(start) and part.endswith(end) and len(part) >= len(start) + len(end):
            inner = part[len(start): len(part) - len(end)]
            return Segment(kind="math", content=fix_malformed_latex(inner), display=display)
    # 구분자 없는 \command{...} 토큰
    return Segment(kind="math", content=part)


def segments_as_dicts(content: str) -> List[Dict[str, object]]:
    return [s.model_dump() for s in split_math(content)]
