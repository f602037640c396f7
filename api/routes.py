"""
api/routes.py — FastAPI 엔드포인트
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, ValidationError

import config
from api.sample_questions import sample_handoff
import api.session as session

from smartdriller.errors import InvalidInput, NetworkFailure
from smartdriller.models.question_model import Course, Question
from smartdriller.models.session_state import ExamHandoff, ExamMode
from smartdriller.services.csv_export import leaderboard_csv, leaderboard_filename, result_csv
from smartdriller.services.exam_service import build_result_payload, get_incorrect_questions
from smartdriller.services.math_text import segments_as_dicts
from smartdriller.services.session_controller import ExamSessionController
from smartdriller.services.speech import question_readback, studied_readback, utterance
from smartdriller.services.storage import NamespacedStore

router = APIRouter()
logger = logging.getLogger(__name__)

# ── Pydantic request bodies ──────────────────────────────────────────────────

class LoadExamBody(BaseModel):
    course: str
    year: str | None = None
    exam_type: ExamMode = ExamMode.STUDY
    topics: str = "all"
    question_count: str = "all"
    time_allowed: int | None = None

class AnswerBody(BaseModel):
    question_id: str
    option: int | None = None

class QuestionBody(BaseModel):
    question_id: str

class NavigateBody(BaseModel):
    index: int = 0

class ReportBody(BaseModel):
    question_id: str
    description: str


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _sid(request: Request) -> str:
    return request.state.session_id


def _controller(request: Request) -> ExamSessionController:
    controller = session.get(_sid(request), "controller")
    if controller is None:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    return controller


def _new_controller(request: Request) -> ExamSessionController:
    sid = _sid(request)
    app_state = request.app.state
    return ExamSessionController(
        store=NamespacedStore(app_state.store, sid),
        notifier=session.get(sid, "toasts"),
        client=app_state.client,
        executor=app_state.executor,
        allow_resubmit=config.ALLOW_RESUBMIT,
    )


async def _start(request: Request, handoff: ExamHandoff) -> dict:
    controller = _new_controller(request)
    try:
        controller.start_handoff(handoff)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    await asyncio.to_thread(controller.load_bookmarks)

    sid = _sid(request)
    session.put(sid, "handoff", handoff)
    session.put(sid, "controller", controller)
    session.put(sid, "last_result", None)
    return _state_dict(controller)


def _state_dict(controller: ExamSessionController) -> dict:
    return {
        "session_key": controller.session_key,
        "mode": controller.mode.value,
        "current_index": controller.current_index,
        "total": len(controller.questions),
        "question_ids": [q.id for q in controller.questions],
        "answers": dict(controller.answers),
        "answered_count": len(controller.answers),
        "studied": sorted(controller.studied),
        "show_explanation": dict(controller.show_explanation),
        "bookmarked": sorted(controller.bookmarked),
        "remaining_seconds": controller.remaining_seconds(),
        "expired": controller.expired,
        "resumed": controller.resumed,
        "submitted": controller.submitted,
    }


def _question_to_dict(controller: ExamSessionController, q: Question) -> dict:
    # 정답/해설은 study 에서 펼친 뒤, 또는 제출 후에만 내려준다
    reveal = q.id in controller.studied or controller.submitted
    return {
        "id": q.id,
        "question": q.question,
        "question_segments": segments_as_dicts(q.question),
        "options": q.options,
        "option_segments": [segments_as_dicts(o) for o in q.options],
        "image": q.image,
        "topic": q.topic,
        "correct_option": q.correct_option if reveal else None,
        "explanation": q.explanation if reveal else None,
        "explanation_segments": segments_as_dicts(q.explanation) if reveal else [],
        "saved_answer": controller.answers.get(q.id),
        "studied": q.id in controller.studied,
        "bookmarked": q.id in controller.bookmarked,
    }


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.post("/api/exam/start")
async def start_exam(handoff: ExamHandoff, request: Request):
    return await _start(request, handoff)


@router.post("/api/exam/start-sample")
async def start_sample_exam(request: Request, exam_type: ExamMode = ExamMode.STUDY):
    return await _start(request, ExamHandoff.model_validate(sample_handoff(exam_type.value)))


@router.post("/api/exam/load")
async def load_exam(body: LoadExamBody, request: Request):
    client = request.app.state.client
    try:
        questions = await asyncio.to_thread(
            client.fetch_questions,
            body.course, body.year, body.exam_type, body.topics, body.question_count,
        )
    except NetworkFailure:
        raise HTTPException(
            status_code=503,
            detail="문제를 불러오지 못했습니다. 잠시 후 다시 시도해 주세요.",
        )
    try:
        handoff = ExamHandoff(
            course=body.course,
            year=body.year,
            exam_type=body.exam_type,
            topics=body.topics,
            time_allowed=body.time_allowed,
            questions=questions,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return await _start(request, handoff)


@router.get("/api/exam/state")
async def get_exam_state(request: Request):
    return _state_dict(_controller(request))


@router.get("/api/exam/question/{index}")
async def get_question(index: int, request: Request):
    controller = _controller(request)
    if not (0 <= index < len(controller.questions)):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")

    d = _question_to_dict(controller, controller.questions[index])
    d.update({"index": index, "total": len(controller.questions)})
    return d


@router.post("/api/exam/answer")
async def save_answer(body: AnswerBody, request: Request):
    controller = _controller(request)
    try:
        if body.option is None:
            controller.clear_option(body.question_id)
        else:
            controller.select_option(body.question_id, body.option)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "ok": True,
        "saved_answer": controller.answers.get(body.question_id),
        "frozen": controller.is_frozen(body.question_id),
        "answered_count": len(controller.answers),
    }


@router.post("/api/exam/reveal")
async def reveal_answer(body: QuestionBody, request: Request):
    controller = _controller(request)
    try:
        controller.reveal(body.question_id)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    q = next(q for q in controller.questions if q.id == body.question_id)
    return _question_to_dict(controller, q)


@router.post("/api/exam/navigate")
async def navigate(body: NavigateBody, request: Request):
    controller = _controller(request)
    if controller.submitted:
        raise HTTPException(status_code=400, detail="이미 제출된 시험입니다.")
    idx = controller.navigate(body.index)
    return {"index": idx, "ok": True}


@router.post("/api/exam/bookmark")
async def toggle_bookmark(body: QuestionBody, request: Request):
    controller = _controller(request)
    try:
        controller.toggle_bookmark(body.question_id)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "bookmarked": body.question_id in controller.bookmarked}


@router.post("/api/exam/report")
async def report_question(body: ReportBody, request: Request):
    controller = _controller(request)
    try:
        ok = await asyncio.to_thread(controller.report, body.question_id, body.description)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": ok}


@router.get("/api/exam/readback")
async def readback(request: Request):
    controller = _controller(request)
    q = controller.current_question
    if q.id in controller.studied:
        text = studied_readback(q, controller.answers.get(q.id))
    else:
        text = question_readback(q)
    return utterance(text)


@router.post("/api/exam/finish")
async def finish_exam(request: Request):
    controller = _controller(request)
    sid = _sid(request)
    handoff: ExamHandoff = session.get(sid, "handoff")

    repeat = controller.result is not None and not controller.allow_resubmit
    result = controller.finish()
    session.put(sid, "last_result", result)

    submitted = None
    if controller.mode == ExamMode.MOCK and handoff is not None and not repeat:
        payload = build_result_payload(handoff, result)
        try:
            submitted = await asyncio.to_thread(request.app.state.client.submit_result, payload)
            session.put(sid, "submitted_result", submitted)
        except NetworkFailure as e:
            logger.warning(f"결과 제출 실패: {e}")
            session.get(sid, "toasts").notify("error", "결과를 서버에 저장하지 못했습니다.")

    data = result.model_dump()
    data["server_result"] = submitted or session.get(sid, "submitted_result")
    return data


@router.get("/api/exam/corrections")
async def get_corrections(request: Request):
    """제출 후 오답 노트: 틀렸거나 풀지 않은 문제를 정답과 함께 돌려준다."""
    controller = _controller(request)
    if not controller.submitted:
        raise HTTPException(status_code=400, detail="제출 후에만 오답 노트를 볼 수 있습니다.")
    wrong = get_incorrect_questions(controller.questions, controller.answers)
    return {
        "total": len(wrong),
        "questions": [_question_to_dict(controller, q) for q in wrong],
    }


@router.get("/api/exam/result.csv")
async def export_result(request: Request):
    controller = _controller(request)
    result = session.get(_sid(request), "last_result")
    if result is None:
        raise HTTPException(status_code=404, detail="결과 정보가 없습니다.")
    return Response(
        content=result_csv(result, controller.questions),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="result.csv"'},
    )


@router.post("/api/exam/exit")
async def exit_exam(request: Request):
    controller = session.get(_sid(request), "controller")
    if controller is not None:
        controller.exit()
    session.reset(_sid(request))
    return {"ok": True}


@router.get("/api/notifications")
async def get_notifications(request: Request):
    toasts = session.get(_sid(request), "toasts")
    return {"notifications": toasts.drain() if toasts is not None else []}


@router.get("/api/competitions/{competition_id}/leaderboard.csv")
async def export_leaderboard(competition_id: str, request: Request, name: str | None = None):
    try:
        entries = await asyncio.to_thread(request.app.state.client.get_leaderboard, competition_id)
    except NetworkFailure:
        raise HTTPException(status_code=503, detail="리더보드를 불러오지 못했습니다.")

    codes = sorted({
        cs.get("courseCode")
        for entry in entries
        for cs in entry.get("courseScores") or []
        if cs.get("courseCode")
    })
    filename = leaderboard_filename(name or competition_id)
    return Response(
        content=leaderboard_csv(entries, [Course(code=c, name=c) for c in codes]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
