import re
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")

UNAVAILABLE_COURSE_NAME = "Course data unavailable"


class Course(BaseModel):
    """
    과목(코스) 정규화 모델.
    백엔드 페이로드의 코스 표현(코드 문자열 / 객체 / ID 참조)을 이 형태 하나로 통일한다.
    """
    id: str = Field("", description="백엔드 문서 ID (없으면 빈 문자열)")
    code: str = Field("", description="코스 코드 (소문자)")
    name: str = Field("", description="표시용 코스 이름")


def resolve_course(raw: Any) -> Course:
    """
    코스 표현의 변형을 Course 하나로 해석한다. 데이터 클라이언트/핸드오프 경계에서 한 번만 호출.

    - "mth101"                    → code/name 모두 문자열
    - "64b7f0c2a1b2c3d4e5f60718"  → ID 참조 (이름 미확인)
    - {"_id", "code", "name"}     → 그대로 복사
    - {"_id"} 만 있음             → ID 참조
    """
    if isinstance(raw, Course):
        return raw
    if raw is None:
        return Course(name="N/A")
    if isinstance(raw, str):
        value = raw.strip()
        if _OBJECT_ID_RE.match(value):
            return Course(id=value, name=UNAVAILABLE_COURSE_NAME)
        return Course(code=value.lower(), name=value)
    if isinstance(raw, dict):
        course_id = str(raw.get("_id") or raw.get("id") or "")
        code = str(raw.get("code") or "").lower()
        name = raw.get("name") or raw.get("courseName") or ""
        if not code and not name:
            if course_id:
                return Course(id=course_id, name=UNAVAILABLE_COURSE_NAME)
            return Course(name="N/A")
        return Course(id=course_id, code=code, name=name or code)
    return Course(name="N/A")


class Question(BaseModel):
    """
    객관식 문제 모델
    Pydantic v2 적용. 백엔드의 camelCase / `_id` 키를 그대로 받는다.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        ...,
        validation_alias=AliasChoices("_id", "id"),
        description="문제 ID (고유 식별자)"
    )
    question: str = Field(
        ...,
        min_length=1,
        description="발문/문제 내용 (LaTeX 포함 가능)"
    )
    options: List[str] = Field(
        ...,
        description="보기 리스트 (객관식 선지)"
    )
    correct_option: int = Field(
        ...,
        validation_alias=AliasChoices("correctOption", "correct_option"),
        description="정답 보기 번호 (1부터 시작)"
    )
    explanation: str = Field(
        "",
        description="해설"
    )
    image: Optional[str] = Field(
        None,
        description="문제 이미지 URL (없으면 None)"
    )
    topic: Optional[str] = Field(None, description="단원/토픽")
    year: Optional[str] = Field(None, description="출제 연도")
    course: Optional[str] = Field(None, description="코스 코드")
    tags: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("year", mode="before")
    @classmethod
    def coerce_year(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("options")
    @classmethod
    def validate_options_length(cls, v: List[str]) -> List[str]:
        """
        검증 로직 1: 보기는 최소 2개 이상이어야 한다.
        """
        if len(v) < 2:
            raise ValueError("보기(options)는 최소 2개 이상의 항목이 필요합니다.")
        return v

    @model_validator(mode="after")
    def validate_correct_option(self) -> "Question":
        """
        검증 로직 2: 정답 번호는 1 ~ len(options) 범위 안에 있어야 한다.
        """
        if not 1 <= self.correct_option <= len(self.options):
            raise ValueError(
                f"정답 번호({self.correct_option})가 보기 범위(1~{len(self.options)})를 벗어났습니다."
            )
        return self

    def option_letter(self, ordinal: int) -> str:
        """보기 번호(1부터)를 A, B, C ... 로 변환."""
        return chr(64 + ordinal)
