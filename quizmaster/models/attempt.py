"""
models/attempt.py

한 학생의 1회 응시(Attempt) 모델.
문항/보기 순서는 서버가 생성 시 한 번 정하며 이후 재조회해도 동일하다.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class Attempt(BaseModel):
    """
    Attributes:
        attempt_id:     응시 ID
        status:         in_progress → submitted (단방향, 1회)
        started_at:     서버가 기록한 시작 시각. 카운트다운의 유일한 기준점.
        question_order: 화면 순서대로 나열된 문항 ID
        option_orders:  문항 ID → 보기 순열 (화면 인덱스 → 원래 인덱스)
    """

    attempt_id: str
    test_id: str = ""
    student_id: str = ""
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime
    question_order: Optional[List[str]] = None
    option_orders: Optional[Dict[str, List[int]]] = None

    @field_validator("started_at")
    @classmethod
    def _started_at_utc(cls, v: datetime) -> datetime:
        # timestamp without time zone 컬럼은 naive 문자열로 온다. 서버 시각은 UTC로 본다
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)

    @field_validator("question_order", mode="before")
    @classmethod
    def _coerce_question_order(cls, v: Any) -> Optional[List[str]]:
        # 배열이 아니면 순서 정보 없음으로 취급
        if not isinstance(v, list):
            return None
        return [str(x) for x in v]

    @field_validator("option_orders", mode="before")
    @classmethod
    def _coerce_option_orders(cls, v: Any) -> Optional[Dict[str, List[int]]]:
        if not isinstance(v, dict):
            return None
        orders: Dict[str, List[int]] = {}
        for key, perm in v.items():
            if not isinstance(perm, list):
                perm = []
            try:
                orders[str(key)] = [int(x) for x in perm]
            except (TypeError, ValueError):
                orders[str(key)] = []
        return orders

    @property
    def is_submitted(self) -> bool:
        return self.status == AttemptStatus.SUBMITTED

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Attempt':
        """test_attempts 행 또는 start_test_attempt RPC 응답을 Attempt로 변환."""
        return cls(
            attempt_id=str(row.get("attempt_id") or row.get("id")),
            test_id=str(row.get("test_id") or ""),
            student_id=str(row.get("student_id") or ""),
            status=row.get("status") or AttemptStatus.IN_PROGRESS,
            started_at=row["started_at"],
            question_order=row.get("question_order"),
            option_orders=row.get("option_orders"),
        )
