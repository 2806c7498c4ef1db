"""
services/memory_backend.py

QuizBackend 계약을 그대로 지키는 인메모리 구현.
로컬 데모 모드(QUIZMASTER_BACKEND=memory)와 테스트에서 사용한다.

원격 DB와 같은 규칙:
  - start_attempt: (test, student)당 응시 1건. 이미 있으면 그대로 반환.
    문항 순서와 문항별 보기 순열은 생성 시 한 번만 섞는다.
  - submit_attempt: 저장된 순열로 역매핑 후 채점, 결과 1건 저장, status 전환.
    두 번째 호출은 결과를 다시 만들지 않고 ALREADY_SUBMITTED를 알린다.
"""

import asyncio
import logging
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from quizmaster.models.attempt import Attempt, AttemptStatus
from quizmaster.models.quiz_model import Test
from quizmaster.services.backend import (
    AlreadySubmittedError,
    BackendRequestError,
    QuizBackend,
)
from quizmaster.services.exam_service import grade_answers
from quizmaster.services.ordering import display_questions

logger = logging.getLogger(__name__)


class ResultRow(BaseModel):
    id: str
    test_id: str
    student_id: str
    score: int
    total_questions: int
    time_taken: int
    answers: List[int]
    completed_at: datetime


class InMemoryBackend(QuizBackend):

    def __init__(
        self,
        tests: Optional[List[Test]] = None,
        seed: Optional[int] = None,
        shuffle: bool = True,
        latency: float = 0.0,
        clock: Callable[[], float] = time.time,
    ):
        self._tests: Dict[str, Test] = {t.id: t for t in tests or []}
        self._attempts: Dict[Tuple[str, str], Attempt] = {}
        self.results: List[ResultRow] = []
        self._rng = random.Random(seed)
        self._shuffle = shuffle
        self._latency = latency
        self._clock = clock
        self.calls: Dict[str, int] = {"start_attempt": 0, "submit_attempt": 0}

    def add_test(self, test: Test) -> None:
        self._tests[test.id] = test

    def put_attempt(self, attempt: Attempt) -> None:
        """기존 응시 행을 직접 심는다 (재접속 시나리오용)."""
        self._attempts[(attempt.test_id, attempt.student_id)] = attempt

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    async def _roundtrip(self) -> None:
        # 네트워크 왕복 흉내. 0이어도 한 번은 양보한다.
        await asyncio.sleep(self._latency)

    async def fetch_test(self, test_id: str) -> Optional[Test]:
        await self._roundtrip()
        return self._tests.get(test_id)

    async def fetch_latest_attempt(self, test_id: str, student_id: str) -> Optional[Attempt]:
        await self._roundtrip()
        return self._attempts.get((test_id, student_id))

    async def start_attempt(self, test_id: str, student_id: str) -> Attempt:
        self.calls["start_attempt"] += 1
        await self._roundtrip()

        existing = self._attempts.get((test_id, student_id))
        if existing is not None:
            return existing

        test = self._tests.get(test_id)
        if test is None:
            raise BackendRequestError("TEST_NOT_FOUND", code="P0002")

        question_order = [q.id for q in test.questions]
        option_orders: Dict[str, List[int]] = {}
        for q in test.questions:
            perm = list(range(len(q.options)))
            if self._shuffle:
                self._rng.shuffle(perm)
            option_orders[q.id] = perm
        if self._shuffle:
            self._rng.shuffle(question_order)

        attempt = Attempt(
            attempt_id=uuid.uuid4().hex,
            test_id=test_id,
            student_id=student_id,
            status=AttemptStatus.IN_PROGRESS,
            started_at=self._now(),
            question_order=question_order,
            option_orders=option_orders,
        )
        self._attempts[(test_id, student_id)] = attempt
        logger.info(f"응시 생성: test={test_id} student={student_id} attempt={attempt.attempt_id}")
        return attempt

    async def submit_attempt(self, test_id: str, student_id: str, answers: List[int]) -> str:
        self.calls["submit_attempt"] += 1
        await self._roundtrip()

        # 아래 구간에는 await가 없으므로 확인-전환이 원자적이다
        attempt = self._attempts.get((test_id, student_id))
        if attempt is None:
            raise BackendRequestError("NO_ACTIVE_ATTEMPT", code="P0001")
        if attempt.is_submitted:
            raise AlreadySubmittedError("ALREADY_SUBMITTED")

        # 화면과 같은 순서 규칙으로 답안을 문항에 맞춘다
        ordered = display_questions(self._tests[test_id], attempt)

        try:
            report = grade_answers(ordered, attempt.option_orders or {}, list(answers))
        except ValueError as e:
            raise BackendRequestError(f"INVALID_ANSWERS: {e}", code="22023") from e

        completed_at = self._now()
        self.results.append(ResultRow(
            id=uuid.uuid4().hex,
            test_id=test_id,
            student_id=student_id,
            score=report.score,
            total_questions=report.total_questions,
            time_taken=max(0, int((completed_at - attempt.started_at).total_seconds())),
            answers=list(answers),
            completed_at=completed_at,
        ))
        self._attempts[(test_id, student_id)] = attempt.model_copy(
            update={"status": AttemptStatus.SUBMITTED}
        )
        logger.info(
            f"응시 제출: test={test_id} student={student_id} "
            f"score={report.score}/{report.total_questions} ({report.percentage}%)"
        )
        return AttemptStatus.SUBMITTED.value

    def results_for(self, test_id: str, student_id: str) -> List[ResultRow]:
        return [r for r in self.results if r.test_id == test_id and r.student_id == student_id]
