"""
services/timers.py

응시 카운트다운 두 겹.
  - WholeTestTimer   : 시험 전체 타이머. 서버의 started_at 기준으로 매 마운트마다 재계산.
  - PerQuestionTimer : 문항별 타이머. 틱 소스는 시험 전체에 하나이며,
                       매 틱마다 '지금 활성인 문항' 셀을 읽어 그 문항만 깎는다.

둘 다 is_active()가 False가 되면(제출 완료 등) 틱이 아무 상태도 바꾸지 않는다.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

import config
from quizmaster.services.ticker import Ticker

logger = logging.getLogger(__name__)


def format_clock(seconds: int) -> str:
    """남은 초 → 'MM:SS'."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def is_low_time(seconds: int, threshold: int = config.LOW_TIME_WARNING_SECONDS) -> bool:
    return seconds < threshold


def _always_active() -> bool:
    return True


class WholeTestTimer:
    """
    시험 전체 카운트다운.

    seed = duration(분) * 60.
    sync()는 클라이언트 시작 시각이 아니라 서버 started_at을 원점으로 남은 시간을 계산하므로
    새로고침 후에도 처음부터 다시 세지 않는다.
    0에 도달하면 on_expire를 정확히 한 번 호출하고 멈춘다.
    """

    def __init__(
        self,
        duration_minutes: int,
        on_expire: Callable[[], Any],
        is_active: Callable[[], bool] = _always_active,
        clock: Callable[[], float] = time.time,
        tick_seconds: float = config.TICK_SECONDS,
    ):
        self.seed = duration_minutes * 60
        self.remaining = self.seed
        self.expired = False
        self._on_expire = on_expire
        self._is_active = is_active
        self._clock = clock
        self._ticker = Ticker(tick_seconds, self.tick, name="whole-test-timer")

    def sync(self, started_at: Optional[datetime]) -> int:
        """started_at 기준 남은 시간 재계산. 이전 메모리 값은 쓰지 않는다."""
        remaining = self.seed
        if started_at is not None:
            if started_at.tzinfo is None:
                started_at = started_at.replace(tzinfo=timezone.utc)
            elapsed = max(0, int(self._clock() - started_at.timestamp()))
            remaining = max(0, remaining - elapsed)
        self.remaining = remaining
        return remaining

    def start(self) -> bool:
        return self._ticker.start()

    def stop(self) -> None:
        self._ticker.stop()

    @property
    def running(self) -> bool:
        return self._ticker.running

    def tick(self) -> Any:
        if self.expired or not self._is_active():
            return None
        if self.remaining <= 1:
            self.remaining = 0
            self.expired = True
            self._ticker.stop()
            logger.info("전체 시험 시간 만료 — 제출 실행")
            return self._on_expire()
        self.remaining -= 1
        return None


class PerQuestionTimer:
    """
    문항별 카운트다운.

    _times는 {문항 인덱스: 남은 초} 스냅샷 맵이고, remaining은 현재 문항 값을 읽어 둔 것이다.
    current_index는 틱 콜백이 매번 읽는 안정된 셀로, 네비게이션 때 틱 소스를 다시 만들지 않는다.
    """

    def __init__(
        self,
        seconds_per_question: int,
        question_count: int,
        on_timeout: Callable[[int], Any],
        is_active: Callable[[], bool] = _always_active,
        tick_seconds: float = config.TICK_SECONDS,
    ):
        self.budget = seconds_per_question
        self.question_count = question_count
        self.current_index = 0
        self.remaining = seconds_per_question
        self.timed_out: Set[int] = set()
        self._times: Dict[int, int] = {}
        self._initialized = False
        self._on_timeout = on_timeout
        self._is_active = is_active
        self._ticker = Ticker(tick_seconds, self.tick, name="per-question-timer")

    @property
    def running(self) -> bool:
        return self._ticker.running

    def initialize(self) -> bool:
        """모든 문항에 전체 예산을 한 번만 배정한다. 두 번째 호출부터는 무시."""
        if self._initialized:
            return False
        self._times = {i: self.budget for i in range(self.question_count)}
        self.remaining = self.budget
        self._initialized = True
        return True

    def start(self) -> bool:
        self.initialize()
        return self._ticker.start()

    def stop(self) -> None:
        self._ticker.stop()

    def time_left(self, index: int) -> int:
        return self._times.get(index, self.budget)

    def focus(self, index: int) -> int:
        """
        일반 이동(이전/다음/숫자키): 떠나는 문항 값을 저장하고 대상 문항의 저장값을 불러온다.
        """
        if index != self.current_index and self.current_index not in self.timed_out:
            self._times[self.current_index] = self.remaining
        self.current_index = index
        self.remaining = self._times.get(index, self.budget)
        return self.remaining

    def focus_fresh(self, index: int) -> int:
        """팔레트 이동: 대상 문항 타이머를 전체 예산으로 되돌린다."""
        self.focus(index)
        self._times[index] = self.budget
        self.remaining = self.budget
        return self.remaining

    def tick(self) -> Any:
        if not self._initialized or not self._is_active():
            return None
        idx = self.current_index
        current = self._times.get(idx)
        if current is None or current <= 0 or idx in self.timed_out:
            return None

        value = current - 1
        self._times[idx] = value
        self.remaining = value
        if value <= 0:
            self.timed_out.add(idx)
            logger.info(f"문항 {idx + 1} 시간 만료 — 잠금")
            return self._on_timeout(idx)
        return None
