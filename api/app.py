"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + static 파일 서빙
"""

import logging
import os
import re
import threading
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

import config
from api.routes import router
import api.session as session
from smartdriller.services.api_client import RemoteDataClient
from smartdriller.services.storage import make_store

SESSION_COOKIE = "sd_session"
_SID_RE = re.compile(r"^[0-9a-f]{32}$")

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    # 만료 세션 주기적 정리 (5분마다). 앱이 내려가면 정리 스레드와 동기화 실행기를 멈춘다.
    stop = threading.Event()

    def _cleanup_loop():
        while not stop.wait(300):
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    t = threading.Thread(target=_cleanup_loop, daemon=True)
    t.start()
    try:
        yield
    finally:
        stop.set()
        if app.state.executor is not None:
            app.state.executor.shutdown(wait=False)
        logger.info("앱 종료: 정리 스레드와 동기화 실행기 중지")


def create_app(client=None, store=None, sync_workers: int = config.SYNC_WORKERS) -> FastAPI:
    """
    Args:
        client:       원격 데이터 클라이언트 (기본: config.API_BASE_URL 로 생성)
        store:        스냅샷 저장소 (기본: config.SNAPSHOT_DIR)
        sync_workers: 동기화 스레드 수. 0이면 요청 안에서 바로 실행.
    """
    app = FastAPI(title="SmartDriller Exam Session", docs_url=None, redoc_url=None, lifespan=_lifespan)

    app.state.client = client or RemoteDataClient(
        config.API_BASE_URL,
        token=config.API_TOKEN,
        timeout=config.HTTP_TIMEOUT,
        retries=config.FETCH_MAX_RETRIES,
    )
    app.state.store = store if store is not None else make_store(config.SNAPSHOT_DIR)
    app.state.executor = ThreadPoolExecutor(max_workers=sync_workers) if sync_workers > 0 else None

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급.
    # 서버 재시작 후에도 같은 쿠키면 같은 ID로 다시 만들어 저장된 진행 상태를 이어간다.
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or not _SID_RE.match(sid):
            sid = session.create_session()
        elif session.get_session(sid) is None:
            sid = session.create_session(sid)

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=config.SESSION_TTL,
        )
        return response

    app.include_router(router)

    # static 파일 마운트
    if os.path.isdir(config.STATIC_DIR):
        app.mount("/static", StaticFiles(directory=config.STATIC_DIR), name="static")

    # 루트 → index.html
    @app.get("/")
    async def serve_index():
        index_path = os.path.join(config.STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    return app
