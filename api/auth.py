"""
api/auth.py — 외부 인증 협력자 연동

인증 자체는 외부 제공자 몫이다. 여기서는
  - 인증 프록시가 붙여 주는 X-User-Id 헤더로 현재 사용자를 식별하고
  - 세션에 저장된 역할 클레임(teacher | student)을 정규화해
  - needs_auth / needs_role 신호를 만든다.
"""

from typing import Literal, Optional

from fastapi import Request
from pydantic import BaseModel

import api.session as session

USER_HEADER = "X-User-Id"
ROLE_HEADER = "X-User-Role"

CanonicalRole = Literal["teacher", "student"]

_TEACHER_ALIASES = {"teacher", "teachers", "org:teacher", "role:teacher"}
_STUDENT_ALIASES = {"student", "students", "learner", "org:students", "role:students"}


def canonicalize_role(raw: Optional[str]) -> Optional[CanonicalRole]:
    """역할 문자열 변형(복수형, org: 접두사 등)을 정규화. 모르는 값은 None."""
    if not raw:
        return None
    s = str(raw).strip().lower()
    if s in _TEACHER_ALIASES:
        return "teacher"
    if s in _STUDENT_ALIASES:
        return "student"
    return None


class Identity(BaseModel):
    user_id: Optional[str] = None
    role: Optional[CanonicalRole] = None

    @property
    def needs_auth(self) -> bool:
        return not self.user_id

    @property
    def needs_role(self) -> bool:
        return bool(self.user_id) and self.role is None

    @property
    def is_student(self) -> bool:
        return self.role == "student"


def get_identity(request: Request) -> Identity:
    """요청의 사용자 식별. 세션에 고른 역할이 있으면 헤더 역할보다 우선."""
    user_id = (request.headers.get(USER_HEADER) or "").strip() or None
    sid = request.state.session_id
    role = canonicalize_role(session.get_role(sid)) or canonicalize_role(
        request.headers.get(ROLE_HEADER)
    )
    return Identity(user_id=user_id, role=role)
