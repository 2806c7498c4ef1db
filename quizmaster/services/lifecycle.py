"""
services/lifecycle.py

응시 수명 관리 (AttemptLifecycleController).

  NotStarted --start--> InProgress --submit(어떤 트리거든)--> Submitted(종료)

- InProgress는 새로고침 후에도 기존 Attempt를 다시 조회해 재진입한다.
- Submitted는 종료 상태이며 항상 결과 화면으로 보낸다.
- 모든 응시 동작 전에 시험 유효성(존재, 활성, 기간)을 검사한다.
"""

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from quizmaster.models.attempt import Attempt, AttemptStatus
from quizmaster.models.quiz_model import Test
from quizmaster.services.backend import BackendError, QuizBackend

logger = logging.getLogger(__name__)


class UnavailableReason(str, Enum):
    NOT_FOUND = "not_found"
    LOAD_FAILED = "load_failed"
    INACTIVE = "inactive"
    NOT_STARTED = "not_started"
    ENDED = "ended"


_MESSAGES = {
    UnavailableReason.NOT_FOUND: "Test not found",
    UnavailableReason.LOAD_FAILED: "Failed to load test",
    UnavailableReason.INACTIVE: "This test is no longer active",
    UnavailableReason.NOT_STARTED: "This test has not started yet",
    UnavailableReason.ENDED: "This test has ended",
}


class TestUnavailableError(Exception):
    """시험에 들어갈 수 없음. 외부 상태가 바뀌기 전까지 재시도해도 소용없다."""
    __test__ = False

    def __init__(self, reason: UnavailableReason):
        super().__init__(_MESSAGES[reason])
        self.reason = reason
        self.message = _MESSAGES[reason]


class EntryPhase(str, Enum):
    INTRO = "intro"        # 응시 기록 없음 → 시작 화면
    RESUME = "resume"      # 진행 중 응시 → 바로 문항 화면
    RESULTS = "results"    # 이미 제출 → 결과 화면


class EntryDecision(BaseModel):
    phase: EntryPhase
    test: Test
    attempt: Optional[Attempt] = None


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def validate_test(test: Optional[Test], now: datetime) -> Test:
    """
    시험 진입 가능 여부 검사.

    Raises:
        TestUnavailableError: 없음 / 비활성 / 시작 전 / 종료
    """
    if test is None:
        raise TestUnavailableError(UnavailableReason.NOT_FOUND)
    if not test.is_active:
        raise TestUnavailableError(UnavailableReason.INACTIVE)
    if now < _as_utc(test.start_date):
        raise TestUnavailableError(UnavailableReason.NOT_STARTED)
    if now > _as_utc(test.end_date):
        raise TestUnavailableError(UnavailableReason.ENDED)
    return test


class AttemptLifecycleController:

    def __init__(self, backend: QuizBackend, clock: Callable[[], float] = time.time):
        self.backend = backend
        self._clock = clock

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    async def load_test(self, test_id: str) -> Test:
        try:
            test = await self.backend.fetch_test(test_id)
        except BackendError as e:
            logger.error(f"시험 로드 실패: test={test_id} ({e})")
            raise TestUnavailableError(UnavailableReason.LOAD_FAILED) from e
        return validate_test(test, self.now())

    async def resolve_attempt(self, test_id: str, student_id: str) -> Optional[Attempt]:
        """
        (test, student)의 최근 응시. 없으면 None.
        조회 자체가 실패해도 None으로 보고 시작 화면을 띄운다.
        시작 버튼은 멱등이므로 기존 응시가 있었다면 그대로 이어진다.
        """
        try:
            return await self.backend.fetch_latest_attempt(test_id, student_id)
        except BackendError as e:
            logger.warning(f"기존 응시 조회 실패, 시작 화면으로 진행: test={test_id} ({e})")
            return None

    async def start_attempt(self, test_id: str, student_id: str) -> Attempt:
        """
        멱등 응시 생성. 진행 중 응시가 있으면 그대로 돌려받는다.
        반환된 started_at이 카운트다운의 원점이다.
        """
        await self.load_test(test_id)
        attempt = await self.backend.start_attempt(test_id, student_id)
        logger.info(
            f"응시 시작: test={test_id} student={student_id} "
            f"attempt={attempt.attempt_id} status={attempt.status.value}"
        )
        return attempt

    async def enter(self, test_id: str, student_id: str) -> EntryDecision:
        """검증 + 기존 응시 조회를 묶어 첫 화면을 결정한다."""
        test = await self.load_test(test_id)
        attempt = await self.resolve_attempt(test_id, student_id)
        if attempt is None:
            phase = EntryPhase.INTRO
        elif attempt.status == AttemptStatus.SUBMITTED:
            phase = EntryPhase.RESULTS
        else:
            phase = EntryPhase.RESUME
        return EntryDecision(phase=phase, test=test, attempt=attempt)
