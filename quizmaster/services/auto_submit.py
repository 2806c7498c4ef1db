"""
services/auto_submit.py

자동 제출 안전장치 (AutoSubmitGuard).

네 갈래의 트리거가 하나의 제출 함수(_submit)로 모인다.
  1. 명시적 제출     — 학생이 제출 버튼을 누름. 실패 시에만 사용자에게 오류 토스트.
  2. 주기적 백업     — BACKUP_INTERVAL마다 조용히 제출 시도. 실패는 예상된 일이므로 로그만.
  3. 마감 강제 제출   — 시작 시 한 번 예약. 만료 FORCE_SUBMIT_BUFFER초 전에 실행되고
                       성공 여부와 관계없이 결과 화면으로 이동.
  4. 화면 숨김/이탈   — 최선 노력. 이탈 시에는 브라우저 경고 문구를 돌려준다.

정확성은 전적으로 백엔드의 멱등 제출 계약에 기댄다.
MIN_SUBMIT_INTERVAL 디바운스는 중복 호출을 줄이는 용도일 뿐 상호배제가 아니다.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Set

import config
from quizmaster.models.session_state import Notification
from quizmaster.services.backend import AlreadySubmittedError, BackendError
from quizmaster.services.ticker import OneShot, Ticker

logger = logging.getLogger(__name__)


class SubmitTrigger(str, Enum):
    EXPLICIT = "explicit"
    BACKUP = "backup"
    FORCED = "forced"
    EXPIRY = "expiry"
    VISIBILITY = "visibility"
    UNLOAD = "unload"


class SubmitOutcome(str, Enum):
    SUBMITTED = "submitted"
    ALREADY_SUBMITTED = "already_submitted"
    SKIPPED = "skipped"
    FAILED = "failed"


class AutoSubmitGuard:
    """
    Args:
        send:         현재 답안 벡터로 백엔드 제출을 수행하는 코루틴 함수
        is_submitted: 클라이언트 상태가 이미 submitted인지
        can_submit:   명시적 제출 버튼 활성 조건 (모든 문항 응답)
        on_success:   제출 성공(또는 이미 제출됨) 처리 — on_success(trigger, already)
        on_redirect:  결과 화면으로 이동
        notify:       토스트 알림 전달
    """

    def __init__(
        self,
        send: Callable[[], Awaitable[Any]],
        is_submitted: Callable[[], bool],
        can_submit: Callable[[], bool],
        on_success: Callable[[SubmitTrigger, bool], None],
        on_redirect: Callable[[], None],
        notify: Callable[[Notification], None],
        clock: Callable[[], float] = time.time,
        backup_interval: float = config.BACKUP_INTERVAL,
        force_submit_buffer: int = config.FORCE_SUBMIT_BUFFER,
        min_submit_interval: float = config.MIN_SUBMIT_INTERVAL,
    ):
        self._send = send
        self._is_submitted = is_submitted
        self._can_submit = can_submit
        self._on_success = on_success
        self._on_redirect = on_redirect
        self._notify = notify
        self._clock = clock
        self.force_submit_buffer = force_submit_buffer
        self.min_submit_interval = min_submit_interval

        self.submitting = False
        self.last_auto_submit = 0.0
        self._backup = Ticker(backup_interval, self.backup, name="backup-submit")
        self._forced = OneShot(self.forced, name="forced-submit")
        self._background: Set[asyncio.Task] = set()

    # ── 수명 ──────────────────────────────────────────────────────────────

    def start(self, time_left: int) -> None:
        """백업 주기 시작 + 마감 강제 제출 1회 예약."""
        self._backup.start()
        if time_left > self.force_submit_buffer:
            self._forced.schedule(time_left - self.force_submit_buffer)

    def stop(self) -> None:
        # 이탈 시 최선 노력 제출(self._background)은 취소하지 않는다
        self._backup.stop()
        self._forced.cancel()

    @property
    def forced_pending(self) -> bool:
        return self._forced.pending

    # ── 단일 제출 함수 ────────────────────────────────────────────────────

    async def _submit(self, trigger: SubmitTrigger) -> SubmitOutcome:
        if self._is_submitted():
            self._on_redirect()
            return SubmitOutcome.ALREADY_SUBMITTED
        try:
            await self._send()
        except AlreadySubmittedError:
            logger.info(f"[{trigger.value}] 이미 제출된 응시 — 결과 화면으로 이동")
            self._on_success(trigger, True)
            return SubmitOutcome.ALREADY_SUBMITTED
        logger.info(f"[{trigger.value}] 제출 성공")
        self._on_success(trigger, False)
        return SubmitOutcome.SUBMITTED

    def _debounced(self) -> bool:
        now = self._clock()
        if now - self.last_auto_submit < self.min_submit_interval:
            return True
        self.last_auto_submit = now
        return False

    # ── 트리거 ────────────────────────────────────────────────────────────

    async def submit_explicit(self) -> SubmitOutcome:
        """제출 버튼. 일시적 오류든 거부든 사용자에게 재시도 가능한 오류 토스트를 띄운다."""
        if self._is_submitted():
            self._on_redirect()
            return SubmitOutcome.ALREADY_SUBMITTED
        if self.submitting or not self._can_submit():
            return SubmitOutcome.SKIPPED

        self.submitting = True
        try:
            return await self._submit(SubmitTrigger.EXPLICIT)
        except BackendError as e:
            logger.error(f"제출 실패 (explicit): {e}")
            self._notify(Notification(
                type="error",
                title="Submission Failed",
                message="Error submitting test. Please try again.",
            ))
            return SubmitOutcome.FAILED
        finally:
            self.submitting = False

    async def backup(self) -> SubmitOutcome:
        if self._is_submitted():
            self._on_redirect()
            return SubmitOutcome.ALREADY_SUBMITTED
        if self._debounced():
            return SubmitOutcome.SKIPPED
        try:
            return await self._submit(SubmitTrigger.BACKUP)
        except Exception as e:
            logger.warning(f"자동 백업 제출 실패 (예상된 동작): {e}")
            return SubmitOutcome.FAILED

    async def forced(self) -> SubmitOutcome:
        """마감 직전 강제 제출. 마감은 어차피 지났으므로 실패해도 결과 화면으로 이동."""
        try:
            outcome = await self._submit(SubmitTrigger.FORCED)
        except Exception as e:
            logger.error(f"강제 제출 실패: {e}")
            outcome = SubmitOutcome.FAILED
        self._on_redirect()
        return outcome

    async def expire(self) -> SubmitOutcome:
        """전체 타이머 0 도달."""
        try:
            outcome = await self._submit(SubmitTrigger.EXPIRY)
        except Exception as e:
            logger.error(f"시간 만료 제출 실패: {e}")
            outcome = SubmitOutcome.FAILED
        self._on_redirect()
        return outcome

    async def on_visibility_change(self, hidden: bool) -> SubmitOutcome:
        if not hidden:
            return SubmitOutcome.SKIPPED
        if self._is_submitted():
            self._on_redirect()
            return SubmitOutcome.ALREADY_SUBMITTED
        if self._debounced():
            return SubmitOutcome.SKIPPED
        try:
            return await self._submit(SubmitTrigger.VISIBILITY)
        except Exception as e:
            logger.warning(f"화면 숨김 제출 실패: {e}")
            return SubmitOutcome.FAILED

    def before_unload(self) -> Optional[str]:
        """
        페이지 이탈 직전. 제출을 백그라운드로 던져 두고(완료를 기다리지 않음)
        브라우저 이탈 확인 문구를 반환한다. 이미 제출됐으면 None.
        """
        if self._is_submitted():
            self._on_redirect()
            return None
        task = asyncio.get_running_loop().create_task(self._unload_submit(), name="unload-submit")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return config.UNLOAD_WARNING

    async def _unload_submit(self) -> SubmitOutcome:
        try:
            return await self._submit(SubmitTrigger.UNLOAD)
        except Exception as e:
            logger.warning(f"이탈 직전 제출 실패: {e}")
            return SubmitOutcome.FAILED

    async def drain(self) -> None:
        """대기 중인 이탈 제출이 끝날 때까지 기다린다 (종료/테스트용)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
