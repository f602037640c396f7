"""
services/api_client.py

시험 준비 백엔드 REST API 얇은 래퍼.
Public API:
  - fetch_questions(...)          : 문제 세트 조회 (초기 로딩, 재시도 있음)
  - post_study_progress(qid)      : 학습 진행 기록
  - get_bookmarks() -> set        : 북마크된 문제 ID 집합
  - post_bookmark / delete_bookmark
  - post_report(qid, description) : 문제 오류 신고
  - submit_result(payload)        : mock 결과 제출
  - get_leaderboard(competition_id)

설계 원칙:
- 모든 전송/HTTP 오류는 NetworkFailure 로 감싼다
- 동기화 호출은 재시도하지 않는다 (실패는 호출자가 알림으로 처리)
- 코스 표현의 변형은 여기서 Course 로 정규화한다
"""

import logging
import time
from typing import Any, Dict, List, Optional, Set

import requests
from pydantic import ValidationError

from smartdriller.errors import NetworkFailure
from smartdriller.models.question_model import Course, Question, resolve_course
from smartdriller.models.session_state import ExamMode

logger = logging.getLogger(__name__)

_FETCH_BACKOFF = 0.4


class RemoteDataClient:
    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 15.0,
        retries: int = 3,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = max(1, retries)
        self.http = session or requests.Session()
        if token:
            self.http.headers["Authorization"] = f"Bearer {token}"

    # ── 내부 ─────────────────────────────────────────────────────────────────

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise NetworkFailure(f"{method} {path} 실패: {e}") from e
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise NetworkFailure(f"{method} {path}: JSON 응답이 아닙니다.") from e
        if not isinstance(data, dict):
            raise NetworkFailure(f"{method} {path}: 응답 형식이 올바르지 않습니다 ({type(data).__name__}).")
        return data

    # ── 문제 ─────────────────────────────────────────────────────────────────

    def fetch_questions(
        self,
        course: Any,
        year: Optional[str],
        mode: ExamMode,
        topics: str = "all",
        question_count: str = "all",
    ) -> List[Question]:
        """문제 세트를 가져온다. 선형 백오프로 재시도 (0.0, 0.4, 0.8, ...)."""
        body = {
            "course": resolve_course(course).code,
            "year": year,
            "topics": topics,
            "questionCount": question_count,
            "examType": ExamMode(mode).value,
        }
        last_error: Optional[NetworkFailure] = None
        for attempt in range(self.retries):
            if attempt:
                time.sleep(attempt * _FETCH_BACKOFF)
            try:
                data = self._request("POST", "/api/questions/fetch", json=body)
                break
            except NetworkFailure as e:
                last_error = e
                logger.warning(f"문제 조회 실패, 재시도 ({attempt + 1}/{self.retries}): {e}")
        else:
            logger.error(f"문제 조회 최종 실패: {last_error}")
            raise last_error

        raw = data.get("questions") or []
        if not isinstance(raw, list):
            raise NetworkFailure("문제 데이터 형식이 올바르지 않습니다: questions 가 목록이 아닙니다.")
        try:
            questions = [Question.model_validate(q) for q in raw]
        except ValidationError as e:
            logger.error(f"문제 데이터 검증 실패: {e.error_count()}개 필드")
            raise NetworkFailure(f"문제 데이터 형식이 올바르지 않습니다: {e.error_count()}개 필드") from e
        logger.info(f"fetch_questions: {len(questions)}개 문제 로드")
        return questions

    def post_study_progress(self, question_id: str) -> None:
        self._request("POST", "/api/questions/study-progress", json={"questionId": question_id})

    # ── 북마크 ───────────────────────────────────────────────────────────────

    def get_bookmarks(self) -> Set[str]:
        """코스별로 묶인 북마크 응답을 평탄화하여 문제 ID 집합으로 반환."""
        data = self._request("GET", "/api/bookmarks")
        raw = data.get("bookmarks", {})
        groups = raw.values() if isinstance(raw, dict) else [raw]

        ids: Set[str] = set()
        for group in groups:
            for bookmark in group:
                question = bookmark.get("question")
                if isinstance(question, dict):
                    qid = question.get("_id") or question.get("id")
                else:
                    qid = question
                if qid:
                    ids.add(str(qid))
        return ids

    def post_bookmark(self, question_id: str) -> None:
        self._request("POST", "/api/bookmarks/add", json={"questionId": question_id})

    def delete_bookmark(self, question_id: str) -> None:
        self._request("DELETE", f"/api/bookmarks/{question_id}")

    # ── 신고 / 결과 ──────────────────────────────────────────────────────────

    def post_report(self, question_id: str, description: str) -> None:
        self._request(
            "POST",
            "/api/reports/submit",
            json={"questionId": question_id, "description": description},
        )

    def submit_result(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/api/results/submit", json=payload)
        return data.get("result", {})

    # ── 대회 ─────────────────────────────────────────────────────────────────

    def get_leaderboard(self, competition_id: str) -> List[Dict[str, Any]]:
        """
        대회 리더보드 전체를 가져온다. 각 항목에 정규화된 `course`(Course)를 추가한다.
        """
        data = self._request(
            "GET",
            f"/api/competitions/{competition_id}/leaderboard",
            params={"page": "1", "limit": "10000"},
        )
        entries = data.get("leaderboard", [])
        for entry in entries:
            entry["course"] = _user_course(entry.get("user"))
        return entries


def _user_course(user: Optional[Dict[str, Any]]) -> Course:
    if not user:
        return Course(name="N/A")
    # 백엔드가 채워준 courseName 이 있으면 우선
    if user.get("courseName"):
        return Course(name=user["courseName"])
    return resolve_course(user.get("course"))
