"""
models/session_state.py

시험 진행 상태를 담는 모델 모음.
  - ExamHandoff     : 이전 화면이 넘겨주는 문제 세트 + 시험 메타데이터 (1회 소비)
  - SessionSnapshot : 로컬 저장소에 직렬화되는 진행 상태 (새로고침/재시작 복구용)
  - SessionResult   : 채점 결과 요약
Pydantic BaseModel 기반 — 직렬화/역직렬화 및 타입 안전성 확보.
UI 코드 없음.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from smartdriller.models.question_model import Course, Question, resolve_course


class ExamMode(str, Enum):
    STUDY = "study"
    MOCK = "mock"


def now_ms() -> int:
    return int(time.time() * 1000)


class ExamHandoff(BaseModel):
    """
    코스 선택 화면이 넘겨주는 시험 정보.

    Attributes:
        course:         코스 (어떤 표현이 와도 Course로 정규화)
        year:           출제 연도 (일반 시험)
        competition_id: 대회 ID (대회 시험)
        exam_type:      study | mock
        topics:         "all" 또는 쉼표로 구분된 토픽 목록
        time_allowed:   제한 시간 (분, mock 전용)
        questions:      고정된 문제 세트
    """
    model_config = ConfigDict(populate_by_name=True)

    course: Course
    year: Optional[str] = None
    competition_id: Optional[str] = Field(None, alias="competitionId")
    exam_type: ExamMode = Field(ExamMode.STUDY, alias="examType")
    topics: str = "all"
    time_allowed: Optional[int] = Field(None, alias="timeAllowed")
    questions: List[Question] = Field(default_factory=list)

    @field_validator("course", mode="before")
    @classmethod
    def normalize_course(cls, v: Any) -> Course:
        return resolve_course(v)

    @field_validator("year", "competition_id", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("topics", mode="before")
    @classmethod
    def join_topics(cls, v: Any) -> str:
        if isinstance(v, (list, tuple)):
            return ",".join(str(t) for t in v) or "all"
        return v or "all"

    @model_validator(mode="after")
    def validate_time_allowed(self) -> "ExamHandoff":
        """mock 시험은 양수 제한 시간이 반드시 있어야 한다."""
        if self.exam_type == ExamMode.MOCK and (not self.time_allowed or self.time_allowed <= 0):
            raise ValueError(f"mock 시험의 제한 시간이 올바르지 않습니다: {self.time_allowed}")
        return self

    @property
    def identifier(self) -> str:
        return self.competition_id or self.year or ""

    @property
    def session_key(self) -> str:
        return f"{self.exam_type.value}_progress_{self.course.code}_{self.identifier}"

    @property
    def topic_list(self) -> List[str]:
        if self.topics == "all":
            return []
        return [t.strip() for t in self.topics.split(",") if t.strip()]


class SessionSnapshot(BaseModel):
    """
    로컬 저장소에 기록되는 진행 상태. 키 이름은 브라우저 시절 포맷(camelCase)을 유지한다.
    """
    model_config = ConfigDict(populate_by_name=True)

    user_answers: Dict[str, int] = Field(default_factory=dict, alias="userAnswers")
    studied_questions: List[str] = Field(default_factory=list, alias="studiedQuestions")
    show_explanation: Dict[str, bool] = Field(default_factory=dict, alias="showExplanation")
    current_question_index: int = Field(0, alias="currentQuestionIndex")
    timestamp: int = Field(default_factory=now_ms)
    question_ids: Optional[List[str]] = Field(None, alias="questionIds")
    started_at: Optional[int] = Field(None, alias="startedAt")

    def referenced_ids(self) -> set:
        """스냅샷이 참조하는 모든 문제 ID."""
        return (
            set(self.user_answers)
            | set(self.studied_questions)
            | set(self.show_explanation)
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class QuestionOutcome(BaseModel):
    question_id: str
    selected_option: int = Field(0, description="선택한 보기 번호 (미응답이면 0)")
    is_correct: bool = False


class SessionResult(BaseModel):
    """채점 결과 요약."""
    total_questions: int
    answered: int
    correct: int
    wrong: int
    unanswered: int
    percentage: int
    grade: str
    topic_scores: List[Dict[str, object]] = Field(default_factory=list)
    answers: List[QuestionOutcome] = Field(default_factory=list)
    time_used_minutes: Optional[int] = None
