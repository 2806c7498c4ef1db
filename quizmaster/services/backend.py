"""
services/backend.py

외부 DB/RPC 협력자(QuizBackend)와의 계약 정의.
구현체:
  - supabase_backend.SupabaseBackend : PostgREST(httpx) 원격 호출
  - memory_backend.InMemoryBackend   : 같은 계약을 지키는 인메모리 구현 (로컬/테스트)

계약 요약:
  - start_attempt는 여러 번 불러도 같은 (test, student)에 대해 기존 응시를 돌려준다.
  - submit_attempt는 원자적이고 멱등이다. 이미 제출된 응시에 다시 호출하면
    AlreadySubmittedError를 던지며, 호출 측은 이를 성공과 동일하게 취급한다.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from quizmaster.models.attempt import Attempt
from quizmaster.models.quiz_model import Test

ALREADY_SUBMITTED_MARKERS = ("ALREADY_SUBMITTED", "RESULT_ALREADY_EXISTS")


class BackendError(Exception):
    """외부 백엔드 호출 실패의 공통 부모."""


class TransientBackendError(BackendError):
    """네트워크 오류, 타임아웃, 5xx. 다음 트리거에서 재시도할 수 있다."""


class BackendRequestError(BackendError):
    """요청 자체가 거부됨 (잘못된 페이로드 등). 재시도해도 결과가 같다."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class AlreadySubmittedError(BackendError):
    """이미 제출된 응시. 오류가 아니라 '제출 완료'와 같은 신호."""


def is_already_submitted_message(message: str) -> bool:
    upper = (message or "").upper()
    return any(marker in upper for marker in ALREADY_SUBMITTED_MARKERS)


class QuizBackend(ABC):
    """응시 서브시스템이 의존하는 외부 DB/RPC 인터페이스."""

    @abstractmethod
    async def fetch_test(self, test_id: str) -> Optional[Test]:
        """시험 1건 조회. 없으면 None."""

    @abstractmethod
    async def fetch_latest_attempt(self, test_id: str, student_id: str) -> Optional[Attempt]:
        """(test, student)의 가장 최근 응시 (started_at 내림차순 1건)."""

    @abstractmethod
    async def start_attempt(self, test_id: str, student_id: str) -> Attempt:
        """응시 시작. 멱등."""

    @abstractmethod
    async def submit_attempt(self, test_id: str, student_id: str, answers: List[int]) -> str:
        """
        화면 순서 답안을 제출하고 새 status를 반환.

        Raises:
            AlreadySubmittedError: 이미 제출됨 (성공과 동일 취급)
            TransientBackendError: 일시적 실패
            BackendRequestError:   거부된 요청
        """

    async def aclose(self) -> None:
        return None
