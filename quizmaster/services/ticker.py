"""
services/ticker.py

asyncio 기반 틱 소스.
  - Ticker  : interval초마다 콜백 실행 (setInterval 대응)
  - OneShot : delay초 뒤 콜백 1회 실행 (setTimeout 대응)

둘 다 start()에 래치가 있어 같은 객체로 태스크가 두 번 만들어지지 않는다.
재렌더/재호출이 잦아도 틱 소스는 세션당 하나만 살아 있어야 하기 때문이다.
콜백은 동기 함수든 코루틴 함수든 상관없다.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


async def _invoke(callback: Callable[[], Any], name: str) -> None:
    try:
        result = callback()
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception:
        # 틱 하나의 실패로 세션 전체 타이머가 죽으면 안 된다
        logger.exception(f"[{name}] 콜백 실행 중 오류")


class Ticker:

    def __init__(self, interval: float, callback: Callable[[], Any], name: str = "ticker"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._started = False
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    def start(self) -> bool:
        """태스크를 만든다. 이미 시작된 적이 있으면 아무것도 하지 않고 False."""
        if self._started:
            return False
        self._started = True
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return True

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                break
            await _invoke(self.callback, self.name)

    def stop(self) -> None:
        """이후 틱을 멈춘다. 콜백 안에서 불러도 진행 중인 콜백은 끝까지 실행된다."""
        self._stopped = True
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()


class OneShot:

    def __init__(self, callback: Callable[[], Any], name: str = "oneshot"):
        self.callback = callback
        self.name = name
        self._started = False
        self._task: Optional[asyncio.Task] = None
        self.fired = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done() and not self.fired

    def schedule(self, delay: float) -> bool:
        if self._started:
            return False
        self._started = True
        self._task = asyncio.get_running_loop().create_task(self._run(delay), name=self.name)
        return True

    async def _run(self, delay: float) -> None:
        await asyncio.sleep(max(0.0, delay))
        self.fired = True
        await _invoke(self.callback, self.name)

    def cancel(self) -> None:
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
