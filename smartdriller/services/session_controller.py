"""
services/session_controller.py

한 문제씩 진행하는 study / mock 시험의 상태 머신.

상태:
  - current_index   : 현재 문제 인덱스 (항상 0 ~ n-1)
  - answers         : {question_id: 선택한 보기 번호(1부터)}
  - studied         : 해설을 펼친 문제 (study 전용, 늘어나기만 함)
  - show_explanation: {question_id: True}
  - bookmarked      : 북마크 (세션과 무관, 백엔드와 동기화)
  - started_at / time_limit_seconds : mock 전용 타이머

모든 변경 연산은 끝에서 스냅샷을 저장소에 기록한다 (주기적 flush 없음).
저장소, 알림 싱크, 원격 클라이언트, 실행기, 시계는 모두 주입받는다.
"""

import logging
import math
import time
from concurrent.futures import Executor, Future
from typing import Any, Callable, Dict, List, Optional, Set, Union

from pydantic import ValidationError

from smartdriller.errors import InvalidInput, NetworkFailure
from smartdriller.models.question_model import Question
from smartdriller.models.session_state import (
    ExamHandoff,
    ExamMode,
    SessionResult,
    SessionSnapshot,
)
from smartdriller.services.exam_service import build_result
from smartdriller.services.notifier import LoggingSink, NotificationSink
from smartdriller.services.storage import KeyValueStore

logger = logging.getLogger(__name__)


class ExamSessionController:
    def __init__(
        self,
        store: KeyValueStore,
        notifier: Optional[NotificationSink] = None,
        client: Any = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.time,
        allow_resubmit: bool = True,
    ):
        self.store = store
        self.notifier = notifier if notifier is not None else LoggingSink()
        self.client = client
        self.executor = executor
        self.clock = clock
        self.allow_resubmit = allow_resubmit

        self.session_key: str = ""
        self.mode: ExamMode = ExamMode.STUDY
        self.questions: List[Question] = []
        self.current_index: int = 0
        self.answers: Dict[str, int] = {}
        self.studied: Set[str] = set()
        self.show_explanation: Dict[str, bool] = {}
        self.bookmarked: Set[str] = set()
        self.started_at: Optional[float] = None
        self.time_limit_seconds: Optional[int] = None
        self.resumed: bool = False
        self.submitted: bool = False
        self._result: Optional[SessionResult] = None
        self._by_id: Dict[str, Question] = {}

    # ── 시작 / 복구 ─────────────────────────────────────────────────────────

    def start(
        self,
        questions: List[Question],
        mode: Union[ExamMode, str],
        session_key: str,
        time_limit_seconds: Optional[int] = None,
    ) -> "ExamSessionController":
        """
        새 세션을 만든다. 같은 키로 저장된 스냅샷이 있고 문제 ID 집합이 같으면
        그 진행 상태를 이어서 불러온다.

        Raises:
            InvalidInput: questions가 비어 있거나 ID가 중복된 경우.
        """
        if not questions:
            raise InvalidInput("문제 세트가 비어 있습니다.")
        by_id = {q.id: q for q in questions}
        if len(by_id) != len(questions):
            raise InvalidInput("문제 ID가 중복되었습니다.")

        mode = ExamMode(mode)
        if mode == ExamMode.MOCK and not time_limit_seconds:
            raise InvalidInput("mock 시험에는 제한 시간이 필요합니다.")

        self.session_key = session_key
        self.mode = mode
        self.questions = list(questions)
        self._by_id = by_id
        self.time_limit_seconds = time_limit_seconds if mode == ExamMode.MOCK else None
        self._reset_progress()

        saved = self._read_saved()
        if saved is not None:
            if self.restore(saved) is not None:
                self.resumed = True
                logger.info(f"세션 복구: {session_key} (현재 {self.current_index + 1}/{len(self.questions)})")
            else:
                logger.info(f"이전 스냅샷이 현재 문제 세트와 달라 폐기: {session_key}")
                self._remove_saved()

        self._persist()
        return self

    def start_handoff(self, handoff: ExamHandoff) -> "ExamSessionController":
        """핸드오프 레코드로 세션을 시작한다."""
        limit = handoff.time_allowed * 60 if handoff.time_allowed else None
        return self.start(handoff.questions, handoff.exam_type, handoff.session_key, limit)

    def restore(
        self, serialized: Union[str, Dict[str, Any], SessionSnapshot]
    ) -> Optional["ExamSessionController"]:
        """
        직렬화된 스냅샷을 검증 후 현재 세션에 적용한다.

        Returns:
            적용되면 self, 스냅샷이 현재 문제 세트와 맞지 않거나 읽을 수 없으면 None.
            None 인 경우 현재 상태는 바뀌지 않는다.
        """
        self._require_started()
        snapshot = _parse_snapshot(serialized)
        if snapshot is None:
            return None

        loaded_ids = set(self._by_id)
        if snapshot.question_ids is not None and set(snapshot.question_ids) != loaded_ids:
            return None
        if not snapshot.referenced_ids() <= loaded_ids:
            return None

        for qid, option in snapshot.user_answers.items():
            if not 1 <= option <= len(self._by_id[qid].options):
                return None

        self.answers = dict(snapshot.user_answers)
        if self.mode == ExamMode.STUDY:
            self.studied = set(snapshot.studied_questions)
            self.show_explanation = dict(snapshot.show_explanation)
        self.current_index = self._clamp(snapshot.current_question_index)
        if self.mode == ExamMode.MOCK and snapshot.started_at is not None:
            self.started_at = snapshot.started_at / 1000
        self._persist()
        return self

    def snapshot(self) -> Dict[str, Any]:
        """영속화용 스냅샷 (camelCase 키)."""
        self._require_started()
        return SessionSnapshot(
            user_answers=dict(self.answers),
            studied_questions=sorted(self.studied),
            show_explanation=dict(self.show_explanation),
            current_question_index=self.current_index,
            timestamp=int(self.clock() * 1000),
            question_ids=[q.id for q in self.questions],
            started_at=int(self.started_at * 1000) if self.started_at is not None else None,
        ).to_dict()

    # ── 사용자 동작 ─────────────────────────────────────────────────────────

    @property
    def current_question(self) -> Question:
        self._require_started()
        return self.questions[self.current_index]

    def select_option(self, question_id: str, option: int) -> None:
        """
        답을 기록한다. study 모드에서 해설을 펼친 문제는 조용히 무시한다.

        Raises:
            InvalidInput: 모르는 문제 ID, 보기 범위 밖 번호, 제출 완료 후 변경.
        """
        question = self._question(question_id)
        if isinstance(option, bool) or not isinstance(option, int):
            raise InvalidInput(f"보기 번호는 정수여야 합니다: {option!r}")
        if not 1 <= option <= len(question.options):
            raise InvalidInput(f"보기 번호({option})가 범위(1~{len(question.options)})를 벗어났습니다.")
        if self.submitted:
            raise InvalidInput("이미 제출된 시험입니다.")
        if self.is_frozen(question_id):
            return

        self.answers[question_id] = option
        self._persist()

    def clear_option(self, question_id: str) -> None:
        """mock 모드에서 선택을 취소한다. 고정된 답은 건드리지 않는다."""
        self._question(question_id)
        if self.submitted or self.is_frozen(question_id):
            return
        if self.answers.pop(question_id, None) is not None:
            self._persist()

    def reveal(self, question_id: str) -> None:
        """
        (study 전용) 해설을 펼치고 답을 고정한다. 두 번 호출해도 결과는 같다.
        처음 펼칠 때만 학습 진행을 백엔드에 기록한다.
        """
        self._question(question_id)
        if self.mode != ExamMode.STUDY:
            raise InvalidInput("해설 보기는 study 모드에서만 가능합니다.")
        if self.submitted:
            raise InvalidInput("이미 제출된 시험입니다.")
        if question_id in self.studied:
            return

        self.studied.add(question_id)
        self.show_explanation[question_id] = True
        self._persist()
        if self.client is not None:
            self._dispatch("학습 진행 기록", self.client.post_study_progress, question_id)

    def is_frozen(self, question_id: str) -> bool:
        return self.mode == ExamMode.STUDY and question_id in self.studied

    def navigate(self, index: int) -> int:
        """
        인덱스를 0 ~ n-1 로 잘라 이동한다. 범위를 벗어나도 예외 없음.
        제출 후에는 화면 위치만 바뀌고 저장소에는 기록하지 않는다.
        """
        self._require_started()
        self.current_index = self._clamp(index)
        self._persist()
        return self.current_index

    def next(self) -> int:
        return self.navigate(self.current_index + 1)

    def previous(self) -> int:
        return self.navigate(self.current_index - 1)

    def toggle_bookmark(self, question_id: str) -> Optional[Future]:
        """
        북마크를 즉시 뒤집고 백엔드 동기화를 비동기로 보낸다.
        실패해도 로컬 상태는 되돌리지 않으며, 알림 싱크로만 보고한다.
        연속 호출은 합치거나 취소하지 않는다 (응답 순서 보장 없음).
        """
        self._question(question_id)
        if question_id in self.bookmarked:
            self.bookmarked.discard(question_id)
            sync = self.client.delete_bookmark if self.client is not None else None
        else:
            self.bookmarked.add(question_id)
            sync = self.client.post_bookmark if self.client is not None else None

        if sync is None:
            return None
        return self._dispatch("북마크 동기화", sync, question_id)

    def load_bookmarks(self) -> Set[str]:
        """백엔드 북마크로 로컬 집합을 교체한다. 실패하면 기존 집합 유지."""
        if self.client is None:
            return self.bookmarked
        try:
            self.bookmarked = set(self.client.get_bookmarks())
        except NetworkFailure as e:
            self._report_failure("북마크 불러오기", e)
        return self.bookmarked

    def report(self, question_id: str, description: str) -> bool:
        """문제 오류를 신고한다. 성공하면 True."""
        self._question(question_id)
        if not description or not description.strip():
            raise InvalidInput("신고 내용이 비어 있습니다.")
        if self.client is None:
            self.notifier.notify("error", "신고를 보낼 수 없습니다 (서버 미연결).")
            return False
        try:
            self.client.post_report(question_id, description.strip())
        except NetworkFailure as e:
            self._report_failure("문제 신고", e)
            return False
        self.notifier.notify("info", "신고가 접수되었습니다.")
        return True

    # ── 타이머 (mock 전용) ──────────────────────────────────────────────────

    def remaining_seconds(self) -> Optional[float]:
        """남은 시간 (초). study 모드는 None. 호출할 때마다 다시 계산한다."""
        if self.mode != ExamMode.MOCK or self.started_at is None:
            return None
        elapsed = self.clock() - self.started_at
        return max(0.0, self.time_limit_seconds - elapsed)

    @property
    def expired(self) -> bool:
        """시간 초과 여부. 자동 제출은 화면 쪽 책임."""
        remaining = self.remaining_seconds()
        return remaining is not None and remaining <= 0

    # ── 종료 ─────────────────────────────────────────────────────────────────

    def finish(self) -> SessionResult:
        """
        채점하고 저장된 스냅샷을 지운다.

        allow_resubmit=False 이면 두 번째 호출부터 첫 결과를 그대로 돌려준다.
        """
        self._require_started()
        if self._result is not None and not self.allow_resubmit:
            logger.info(f"중복 제출 무시: {self.session_key}")
            return self._result

        result = build_result(self.questions, self.answers, self._time_used_minutes())
        self._remove_saved()
        self.submitted = True
        self._result = result
        logger.info(
            f"시험 종료: {self.session_key} — {result.correct}/{result.total_questions} "
            f"({result.percentage}%, {result.grade})"
        )
        return result

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    def exit(self) -> None:
        """채점 없이 나간다 (뒤로가기/포기). 저장된 진행 상태를 지운다."""
        self._require_started()
        self._remove_saved()
        logger.info(f"세션 종료(미제출): {self.session_key}")

    # ── 내부 ─────────────────────────────────────────────────────────────────

    def _reset_progress(self) -> None:
        self.current_index = 0
        self.answers = {}
        self.studied = set()
        self.show_explanation = {}
        self.started_at = self.clock() if self.mode == ExamMode.MOCK else None
        self.resumed = False
        self.submitted = False
        self._result = None

    def _require_started(self) -> None:
        if not self.questions:
            raise RuntimeError("세션이 시작되지 않았습니다. start()를 먼저 호출하세요.")

    def _question(self, question_id: str) -> Question:
        self._require_started()
        question = self._by_id.get(question_id)
        if question is None:
            raise InvalidInput(f"세션에 없는 문제입니다: {question_id}")
        return question

    def _clamp(self, index: int) -> int:
        return max(0, min(int(index), len(self.questions) - 1))

    def _time_used_minutes(self) -> Optional[int]:
        remaining = self.remaining_seconds()
        if remaining is None:
            return None
        allowed = self.time_limit_seconds // 60
        return max(allowed - math.floor(remaining / 60), 0)

    def _persist(self) -> None:
        # 제출 후에는 지운 스냅샷을 다시 쓰지 않는다
        if self.submitted:
            return
        try:
            self.store.set(self.session_key, _dump(self.snapshot()))
        except OSError as e:
            logger.error(f"진행 상태 저장 실패 ({self.session_key}): {e}")

    def _read_saved(self) -> Optional[str]:
        try:
            return self.store.get(self.session_key)
        except OSError as e:
            logger.error(f"진행 상태 읽기 실패 ({self.session_key}): {e}")
            return None

    def _remove_saved(self) -> None:
        try:
            self.store.remove(self.session_key)
        except OSError as e:
            logger.error(f"진행 상태 삭제 실패 ({self.session_key}): {e}")

    def _dispatch(self, label: str, fn: Callable[..., Any], *args: Any) -> Optional[Future]:
        """백엔드 동기화를 실행기에 넘긴다. 실행기가 없으면 바로 실행."""

        def task() -> None:
            try:
                fn(*args)
            except NetworkFailure as e:
                self._report_failure(label, e)
            except Exception:
                logger.exception(f"{label} 중 예기치 않은 오류")
                self.notifier.notify("error", f"{label}에 실패했습니다.")

        if self.executor is None:
            task()
            return None
        return self.executor.submit(task)

    def _report_failure(self, label: str, error: NetworkFailure) -> None:
        logger.warning(f"{label} 실패: {error}")
        self.notifier.notify("error", f"{label}에 실패했습니다. 잠시 후 다시 시도해 주세요.")


def _dump(snapshot: Dict[str, Any]) -> str:
    return SessionSnapshot.model_validate(snapshot).model_dump_json(by_alias=True)


def _parse_snapshot(serialized: Union[str, Dict[str, Any], SessionSnapshot]) -> Optional[SessionSnapshot]:
    if isinstance(serialized, SessionSnapshot):
        return serialized
    try:
        if isinstance(serialized, (str, bytes)):
            return SessionSnapshot.model_validate_json(serialized)
        return SessionSnapshot.model_validate(serialized)
    except ValidationError as e:
        logger.info(f"스냅샷 형식 오류, 폐기: {e.error_count()}개 필드")
        return None
