"""
models/session_state.py

응시 화면의 로컬 상태를 담는 OMR 카드 모델.
영속화하지 않으며, 마운트 시 Attempt + Test로부터 다시 만든다.
UI 코드 없음.
"""

from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

UNANSWERED = -1


class SessionPhase(str, Enum):
    LOADING = "loading"
    BLOCKED = "blocked"          # 시험을 열 수 없음 (test_error 참고)
    INTRO = "intro"              # 시작 전 안내 화면
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"      # 종료 상태. 항상 결과 화면으로 이동
    LEFT = "left"                # 제출 확인 없이 결과 화면으로 이동함 (마감 제출 실패)


class Notification(BaseModel):
    """셸이 토스트로 띄우는 일회성 알림."""
    type: str = Field(..., description="success | error")
    title: str
    message: str
    celebrate: bool = Field(False, description="완료 축하 애니메이션 여부")


class AttemptState(BaseModel):
    """
    Attributes:
        current_index:      현재 보고 있는 문항 (화면 순서, 0-based)
        answers:            답안 벡터. 화면 순서 보기 인덱스, 미응답은 -1
        flagged:            검토 표시 {문항 인덱스: bool}
        timed_out:          문항 타이머가 만료되어 잠긴 인덱스 집합
        time_left:          전체 시험 남은 시간 (초)
        question_time_left: 현재 문항 남은 시간 (초)
    """

    current_index: int = Field(default=0, ge=0)
    answers: List[int] = Field(default_factory=list)
    flagged: Dict[int, bool] = Field(default_factory=dict)
    timed_out: Set[int] = Field(default_factory=set)
    time_left: int = 0
    question_time_left: int = 0
    submitting: bool = False
    redirect_to: Optional[str] = None

    @classmethod
    def for_questions(cls, count: int) -> 'AttemptState':
        return cls(answers=[UNANSWERED] * count)

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a != UNANSWERED)

    @property
    def all_answered(self) -> bool:
        return bool(self.answers) and UNANSWERED not in self.answers
