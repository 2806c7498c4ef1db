"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from quizmaster.models.attempt import Attempt
from quizmaster.models.quiz_model import Question, Test
from quizmaster.services.memory_backend import InMemoryBackend

pytest_plugins = ("pytest_asyncio",)

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc).timestamp()


class FakeClock:
    """Manually advanced wall clock (seconds since epoch)."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def dt(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=timezone.utc)


def make_questions(count: int, option_count: int = 4) -> List[Question]:
    letters = "ABCDEFGH"
    return [
        Question(
            id=f"q{i + 1}",
            question=f"Question {i + 1}?",
            options=[f"{letters[j]}{i + 1}" for j in range(option_count)],
            correct_answer=i % option_count,
        )
        for i in range(count)
    ]


def make_test(
    clock: FakeClock,
    test_id: str = "t1",
    question_count: int = 2,
    duration: int = 5,
    time_per_question: Optional[int] = 30,
    is_active: bool = True,
    start_offset: timedelta = timedelta(days=-1),
    end_offset: timedelta = timedelta(days=1),
) -> Test:
    now = clock.dt()
    return Test(
        id=test_id,
        title="Sample",
        duration=duration,
        time_per_question=time_per_question,
        questions=make_questions(question_count),
        is_active=is_active,
        start_date=now + start_offset,
        end_date=now + end_offset,
        created_by="teacher-1",
    )


def make_attempt(
    test: Test,
    student_id: str = "s1",
    started_at: Optional[datetime] = None,
    status: str = "in_progress",
    question_order: Optional[List[str]] = None,
    option_orders: Optional[dict] = None,
) -> Attempt:
    return Attempt(
        attempt_id="a-1",
        test_id=test.id,
        student_id=student_id,
        status=status,
        started_at=started_at or test.start_date,
        question_order=question_order,
        option_orders=option_orders,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_test(clock) -> Test:
    return make_test(clock)


@pytest.fixture
def backend(clock, sample_test) -> InMemoryBackend:
    return InMemoryBackend(tests=[sample_test], seed=7, clock=clock)
