"""
api/session.py — 멀티유저 인메모리 세션 (쿠키 기반)

브라우저마다 UUID 세션 ID를 발급하고 두 가지만 기억한다.
  - role:    온보딩에서 고른 역할 (teacher | student)
  - screens: {"test_id:user_id": TakeTestSession} — 마운트된 응시 화면
TTL(기본 1시간)이 지나면 세션이 사라지고, 그 세션의 응시 화면은 모두 언마운트된다.
"""

import threading
import time
import uuid
from typing import Any, Dict, List, Optional

import config

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_last_seen: dict[str, float] = {}

SESSION_TTL = config.SESSION_TTL


def _new_state() -> dict[str, Any]:
    return {"role": None, "screens": {}}


def _drop(sid: str) -> dict[str, Any]:
    # _lock 안에서만 호출
    del _last_seen[sid]
    return _sessions.pop(sid)


def _unmount_screens(states: List[dict[str, Any]]) -> None:
    # 언마운트는 락 밖에서 (태스크 취소가 다른 코드를 깨울 수 있다)
    for state in states:
        for screen in state["screens"].values():
            screen.unmount()
        state["screens"] = {}


def create_session() -> str:
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _last_seen[sid] = time.time()
    return sid


def get_session(sid: str) -> Optional[dict[str, Any]]:
    """살아 있는 세션이면 접근 시각을 갱신해 돌려주고, 만료됐으면 정리 후 None."""
    expired: List[dict[str, Any]] = []
    with _lock:
        if sid not in _sessions:
            return None
        now = time.time()
        if now - _last_seen[sid] > SESSION_TTL:
            expired.append(_drop(sid))
            state = None
        else:
            _last_seen[sid] = now
            state = _sessions[sid]
    _unmount_screens(expired)
    return state


def get_role(sid: str) -> Optional[str]:
    state = get_session(sid)
    return state["role"] if state else None


def set_role(sid: str, role: str) -> None:
    state = get_session(sid)
    if state is not None:
        state["role"] = role


def screens(sid: str) -> Dict[str, Any]:
    """세션의 마운트된 응시 화면 맵. 세션이 없으면 빈 dict (저장되지 않음)."""
    state = get_session(sid)
    return state["screens"] if state else {}


def reset(sid: str) -> None:
    """열린 응시 화면을 모두 닫는다. 역할 선택은 그대로 둔다."""
    state = get_session(sid)
    if state is not None:
        _unmount_screens([state])


def cleanup_expired() -> int:
    """만료된 세션을 정리. 제거된 수 반환."""
    now = time.time()
    with _lock:
        expired = [_drop(sid) for sid, ts in list(_last_seen.items()) if now - ts > SESSION_TTL]
    _unmount_screens(expired)
    return len(expired)


def clear() -> None:
    """모든 세션 제거 (앱 종료 시)."""
    with _lock:
        states = [_drop(sid) for sid in list(_sessions)]
    _unmount_screens(states)
