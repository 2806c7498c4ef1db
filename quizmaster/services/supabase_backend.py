"""
services/supabase_backend.py

Supabase(PostgREST) 원격 백엔드. httpx.AsyncClient 사용.

엔드포인트:
  - GET  /rest/v1/tests            : 시험 + 내장 questions
  - GET  /rest/v1/test_attempts    : 최근 응시 1건 (started_at desc)
  - POST /rest/v1/rpc/start_test_attempt
  - POST /rest/v1/rpc/submit_test_result

오류 분류:
  - 연결 실패 / 타임아웃 / 5xx     → TransientBackendError
  - ALREADY_SUBMITTED 계열 메시지 → AlreadySubmittedError
  - 그 외 4xx                      → BackendRequestError
"""

import logging
from typing import Any, List, Optional

import httpx

import config
from quizmaster.models.attempt import Attempt
from quizmaster.models.quiz_model import Test
from quizmaster.services.backend import (
    AlreadySubmittedError,
    BackendRequestError,
    QuizBackend,
    TransientBackendError,
    is_already_submitted_message,
)

logger = logging.getLogger(__name__)

_TEST_SELECT = "*,questions(id,question_text,options,correct_answer,order_index)"
_ATTEMPT_SELECT = "id,test_id,student_id,started_at,status,question_order,option_orders"


def _resolve_credentials(url: str, key: str) -> tuple[str, str]:
    if not url or not key:
        logger.warning("Supabase 환경 변수가 없습니다. 개발용 placeholder를 사용합니다.")
    return (url or config.PLACEHOLDER_SUPABASE_URL, key or config.PLACEHOLDER_SUPABASE_KEY)


class SupabaseBackend(QuizBackend):

    def __init__(
        self,
        url: str = config.SUPABASE_URL,
        anon_key: str = config.SUPABASE_ANON_KEY,
        access_token: str = "",
        timeout: float = config.REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        base_url, key = _resolve_credentials(url, anon_key)
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": key,
                "Authorization": f"Bearer {access_token or key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── 공통 요청 ─────────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientBackendError(f"{path} 요청 시간 초과") from e
        except httpx.TransportError as e:
            raise TransientBackendError(f"{path} 연결 실패: {e}") from e

        if resp.status_code >= 500:
            raise TransientBackendError(f"{path} 서버 오류 ({resp.status_code})")
        if resp.status_code >= 400:
            message, code = _error_detail(resp)
            if is_already_submitted_message(message):
                raise AlreadySubmittedError(message)
            raise BackendRequestError(message or f"HTTP {resp.status_code}", code=code)

        if not resp.content:
            return None
        return resp.json()

    # ── 계약 구현 ─────────────────────────────────────────────────────────

    async def fetch_test(self, test_id: str) -> Optional[Test]:
        rows = await self._request(
            "GET", "/tests",
            params={"select": _TEST_SELECT, "id": f"eq.{test_id}", "limit": "1"},
        )
        if not rows:
            return None
        return Test.from_row(rows[0])

    async def fetch_latest_attempt(self, test_id: str, student_id: str) -> Optional[Attempt]:
        rows = await self._request(
            "GET", "/test_attempts",
            params={
                "select": _ATTEMPT_SELECT,
                "test_id": f"eq.{test_id}",
                "student_id": f"eq.{student_id}",
                "order": "started_at.desc",
                "limit": "1",
            },
        )
        if not rows:
            return None
        return Attempt.from_row(rows[0])

    async def start_attempt(self, test_id: str, student_id: str) -> Attempt:
        data = await self._request(
            "POST", "/rpc/start_test_attempt",
            json={"p_test_id": test_id, "p_student_id": student_id},
        )
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            raise BackendRequestError("start_test_attempt returned no attempt")
        data.setdefault("test_id", test_id)
        data.setdefault("student_id", student_id)
        return Attempt.from_row(data)

    async def submit_attempt(self, test_id: str, student_id: str, answers: List[int]) -> str:
        data = await self._request(
            "POST", "/rpc/submit_test_result",
            json={"p_test_id": test_id, "p_student_id": student_id, "p_answers": list(answers)},
        )
        if isinstance(data, dict) and data.get("status"):
            return str(data["status"])
        return "submitted"


def _error_detail(resp: httpx.Response) -> tuple[str, str]:
    """PostgREST 오류 본문 {code, message, details, hint}에서 메시지/코드 추출."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text, ""
    if not isinstance(body, dict):
        return str(body), ""
    parts = [str(body.get(k)) for k in ("message", "details", "hint") if body.get(k)]
    return " ".join(parts), str(body.get("code") or "")
