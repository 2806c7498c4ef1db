"""
api/routes.py — FastAPI 엔드포인트

브라우저 셸은 사용자 이벤트(답 선택, 이동, 키 입력, 제출, 화면 숨김/이탈)를 전달하고
응답 스냅샷으로 화면을 그린다. 타이머는 서버 이벤트 루프에서 돈다.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

import api.session as session
from api.auth import Identity, canonicalize_role, get_identity
from quizmaster.models.session_state import SessionPhase
from quizmaster.services.take_test import TakeTestSession

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class RoleBody(BaseModel):
    role: str

class AnswerBody(BaseModel):
    option_index: int

class NavigateBody(BaseModel):
    action: Literal["next", "previous", "jump", "go_to"]
    index: Optional[int] = None

class KeyBody(BaseModel):
    key: str

class VisibilityBody(BaseModel):
    hidden: bool


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def require_student(request: Request) -> Identity:
    """응시 흐름 진입 조건. 인증 → 역할 → 학생 순으로 검사."""
    identity = get_identity(request)
    if identity.needs_auth:
        raise HTTPException(status_code=401, detail={"needs_auth": True, "message": "Sign in to take this test."})
    if identity.needs_role:
        raise HTTPException(status_code=409, detail={"needs_role": True, "message": "Choose a role to continue."})
    if not identity.is_student:
        raise HTTPException(status_code=403, detail="Only students can take tests.")
    return identity


def _key(test_id: str, identity: Identity) -> str:
    return f"{test_id}:{identity.user_id}"


def _mounted(request: Request, test_id: str, identity: Identity) -> TakeTestSession:
    take_test = session.screens(request.state.session_id).get(_key(test_id, identity))
    if take_test is None:
        raise HTTPException(status_code=404, detail="응시 화면이 열려 있지 않습니다.")
    return take_test


def _respond(take_test: TakeTestSession, **extra) -> dict:
    data = take_test.snapshot()
    data["notifications"] = [n.model_dump() for n in take_test.drain_notifications()]
    data.update(extra)
    return data


# ── 인증 / 역할 ──────────────────────────────────────────────────────────────

@router.get("/api/me")
async def me(request: Request):
    identity = get_identity(request)
    return {
        "user_id": identity.user_id,
        "role": identity.role,
        "needs_auth": identity.needs_auth,
        "needs_role": identity.needs_role,
    }


@router.post("/api/role")
async def set_role(body: RoleBody, request: Request):
    identity = get_identity(request)
    if identity.needs_auth:
        raise HTTPException(status_code=401, detail={"needs_auth": True, "message": "Sign in first."})
    role = canonicalize_role(body.role)
    if role is None:
        raise HTTPException(status_code=400, detail="역할은 teacher 또는 student 여야 합니다.")
    session.set_role(request.state.session_id, role)
    return {"role": role, "ok": True}


# ── 응시 흐름 ────────────────────────────────────────────────────────────────

@router.get("/api/tests/{test_id}/attempt")
async def open_attempt(test_id: str, request: Request, identity: Identity = Depends(require_student)):
    """응시 화면 마운트. 이미 마운트돼 있으면 현재 상태만 돌려준다."""
    mounted = session.screens(request.state.session_id)
    key = _key(test_id, identity)

    take_test = mounted.get(key)
    # 차단 화면은 매번 다시 검증한다 (일시적 로드 실패, 시작 시각 도래 등)
    if take_test is None or take_test.phase == SessionPhase.BLOCKED:
        take_test = TakeTestSession(request.app.state.backend, test_id, identity.user_id)
        mounted[key] = take_test
        try:
            await take_test.mount()
        except Exception:
            # 마운트 실패한 화면은 남기지 않는다 (다음 요청에서 다시 마운트)
            mounted.pop(key, None)
            take_test.unmount()
            raise
    return _respond(take_test)


@router.delete("/api/tests/{test_id}/attempt")
async def close_attempt(test_id: str, request: Request, identity: Identity = Depends(require_student)):
    take_test = session.screens(request.state.session_id).pop(_key(test_id, identity), None)
    if take_test is not None:
        take_test.unmount()
    return {"ok": True}


@router.post("/api/tests/{test_id}/start")
async def start_attempt(test_id: str, request: Request, identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    await take_test.start()
    return _respond(take_test)


@router.post("/api/tests/{test_id}/answer")
async def select_answer(test_id: str, body: AnswerBody, request: Request,
                        identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    if not take_test.select_answer(body.option_index):
        raise HTTPException(status_code=409, detail="이 문항에는 답할 수 없습니다.")
    return _respond(take_test)


@router.post("/api/tests/{test_id}/navigate")
async def navigate(test_id: str, body: NavigateBody, request: Request,
                   identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    if body.action == "next":
        moved = take_test.next()
    elif body.action == "previous":
        moved = take_test.previous()
    elif body.index is None:
        raise HTTPException(status_code=400, detail="index가 필요합니다.")
    elif body.action == "jump":
        moved = take_test.jump(body.index)
    else:
        moved = take_test.go_to(body.index)
    if not moved:
        raise HTTPException(status_code=409, detail="해당 문항으로 이동할 수 없습니다.")
    return _respond(take_test)


@router.post("/api/tests/{test_id}/key")
async def keypress(test_id: str, body: KeyBody, request: Request,
                   identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    handled = take_test.handle_key(body.key)
    return _respond(take_test, handled=handled)


@router.post("/api/tests/{test_id}/flag")
async def toggle_flag(test_id: str, request: Request, identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    take_test.toggle_flag()
    return _respond(take_test)


@router.post("/api/tests/{test_id}/submit")
async def submit(test_id: str, request: Request, identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    outcome = await take_test.submit()
    return _respond(take_test, outcome=outcome.value)


@router.post("/api/tests/{test_id}/visibility")
async def visibility(test_id: str, body: VisibilityBody, request: Request,
                     identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    outcome = await take_test.visibility_changed(body.hidden)
    return _respond(take_test, outcome=outcome.value)


@router.post("/api/tests/{test_id}/unload")
async def before_unload(test_id: str, request: Request, identity: Identity = Depends(require_student)):
    """beforeunload / sendBeacon. 제출은 기다리지 않고 이탈 경고 문구만 돌려준다."""
    take_test = _mounted(request, test_id, identity)
    warning = take_test.before_unload()
    return {"warning": warning, "redirect_to": take_test.state.redirect_to}


@router.get("/api/tests/{test_id}/notifications")
async def notifications(test_id: str, request: Request, identity: Identity = Depends(require_student)):
    take_test = _mounted(request, test_id, identity)
    return {"notifications": [n.model_dump() for n in take_test.drain_notifications()]}


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(request.state.session_id)
    return {"ok": True}
