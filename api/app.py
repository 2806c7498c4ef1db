"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + 백엔드 연결
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

import config
from api.routes import router
from api.sample_tests import build_sample_tests
import api.session as session
from quizmaster.services.backend import QuizBackend
from quizmaster.services.memory_backend import InMemoryBackend
from quizmaster.services.supabase_backend import SupabaseBackend

SESSION_COOKIE = "quizmaster_session"

logger = logging.getLogger(__name__)


def make_backend(kind: str = config.BACKEND) -> QuizBackend:
    """설정값에 맞는 백엔드 생성. memory 모드는 샘플 시험을 심어 둔다."""
    if kind == "supabase":
        logger.info("Supabase 백엔드 사용")
        return SupabaseBackend()
    if kind != "memory":
        logger.warning(f"알 수 없는 백엔드 '{kind}' — memory로 대체")
    logger.info("인메모리 백엔드 사용 (샘플 시험 포함)")
    return InMemoryBackend(tests=build_sample_tests())


def create_app(backend: Optional[QuizBackend] = None) -> FastAPI:

    # 만료 세션 주기적 정리 (5분마다)
    async def _cleanup_loop():
        while True:
            await asyncio.sleep(config.SESSION_CLEANUP_INTERVAL)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cleanup = asyncio.create_task(_cleanup_loop())
        try:
            yield
        finally:
            cleanup.cancel()
            session.clear()
            await app.state.backend.aclose()

    app = FastAPI(title="QuizMaster", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.backend = backend or make_backend()

    # CORS (브라우저 셸이 다른 출처에서 붙는 경우)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session.SESSION_TTL,
        )
        return response

    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"ok": True, "backend": type(app.state.backend).__name__}

    return app
