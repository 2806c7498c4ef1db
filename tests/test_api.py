"""HTTP-level tests for the take-test endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.auth import canonicalize_role
from api.sample_tests import SAMPLE_TEST_ID, build_sample_tests
from quizmaster.models.quiz_model import Test
from quizmaster.services.backend import TransientBackendError
from quizmaster.services.memory_backend import InMemoryBackend

STUDENT = {"X-User-Id": "student-1", "X-User-Role": "student"}
BASE = f"/api/tests/{SAMPLE_TEST_ID}"


def _ended_test() -> Test:
    now = datetime.now(timezone.utc)
    [sample] = build_sample_tests(now - timedelta(days=60))
    return sample.model_copy(update={"id": "ended", "end_date": now - timedelta(days=1)})


@pytest.fixture
def backend():
    return InMemoryBackend(tests=build_sample_tests() + [_ended_test()], shuffle=False)


@pytest.fixture
def client(backend):
    with TestClient(create_app(backend)) as c:
        yield c


@pytest.mark.parametrize("raw, expected", [
    ("Teachers", "teacher"),
    ("org:students", "student"),
    ("learner", "student"),
    ("admin", None),
    (None, None),
])
def test_canonicalize_role(raw, expected):
    assert canonicalize_role(raw) == expected


def test_health(client):
    assert client.get("/health").json() == {"ok": True, "backend": "InMemoryBackend"}


def test_signed_out_needs_auth(client):
    resp = client.get(f"{BASE}/attempt")

    assert resp.status_code == 401
    assert resp.json()["detail"]["needs_auth"] is True


def test_missing_role_then_onboarding(client):
    headers = {"X-User-Id": "student-1"}

    resp = client.get(f"{BASE}/attempt", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["needs_role"] is True

    assert client.post("/api/role", json={"role": "Students"}, headers=headers).json()["role"] == "student"
    assert client.get(f"{BASE}/attempt", headers=headers).status_code == 200


def test_unknown_role_rejected(client):
    resp = client.post("/api/role", json={"role": "admin"}, headers={"X-User-Id": "u"})

    assert resp.status_code == 400


def test_teacher_cannot_take_test(client):
    resp = client.get(f"{BASE}/attempt", headers={"X-User-Id": "t", "X-User-Role": "teacher"})

    assert resp.status_code == 403


def test_actions_require_mounted_screen(client):
    resp = client.post(f"{BASE}/start", headers=STUDENT)

    assert resp.status_code == 404


def test_full_flow(client, backend):
    intro = client.get(f"{BASE}/attempt", headers=STUDENT).json()
    assert intro["phase"] == "intro"
    assert intro["test"]["question_count"] == 4

    started = client.post(f"{BASE}/start", headers=STUDENT).json()
    assert started["phase"] == "in_progress"
    assert started["current_index"] == 0
    assert started["question_time_left"] == 30
    assert started["time_left"] <= 120
    assert started["can_submit"] is False

    # shuffle=False: display order equals canonical order
    for i, answer in enumerate([1, 2, 1, 3]):
        if i:
            nav = client.post(f"{BASE}/navigate", json={"action": "next"}, headers=STUDENT)
            assert nav.status_code == 200
        data = client.post(f"{BASE}/answer", json={"option_index": answer}, headers=STUDENT).json()
        assert data["answers"][i] == answer
    assert data["can_submit"] is True

    done = client.post(f"{BASE}/submit", headers=STUDENT).json()
    assert done["outcome"] == "submitted"
    assert done["phase"] == "submitted"
    assert done["redirect_to"] == f"/results/{SAMPLE_TEST_ID}"
    assert done["notifications"][0]["title"] == "Test Submitted!"
    [result] = backend.results_for(SAMPLE_TEST_ID, "student-1")
    assert result.score == 4


def test_navigation_errors(client):
    client.get(f"{BASE}/attempt", headers=STUDENT)
    client.post(f"{BASE}/start", headers=STUDENT)

    assert client.post(f"{BASE}/navigate", json={"action": "previous"}, headers=STUDENT).status_code == 409
    assert client.post(f"{BASE}/navigate", json={"action": "jump"}, headers=STUDENT).status_code == 400
    assert client.post(f"{BASE}/navigate", json={"action": "jump", "index": 9}, headers=STUDENT).status_code == 409

    jumped = client.post(f"{BASE}/navigate", json={"action": "jump", "index": 2}, headers=STUDENT).json()
    assert jumped["current_index"] == 2


def test_keyboard_and_flag(client):
    client.get(f"{BASE}/attempt", headers=STUDENT)
    client.post(f"{BASE}/start", headers=STUDENT)

    data = client.post(f"{BASE}/key", json={"key": "b"}, headers=STUDENT).json()
    assert data["handled"] is True
    assert data["answers"][0] == 1

    data = client.post(f"{BASE}/flag", headers=STUDENT).json()
    assert data["flagged"] == [0]

    data = client.post(f"{BASE}/key", json={"key": "z"}, headers=STUDENT).json()
    assert data["handled"] is False


def test_unload_warns_and_submits(client, backend):
    client.get(f"{BASE}/attempt", headers=STUDENT)
    client.post(f"{BASE}/start", headers=STUDENT)

    resp = client.post(f"{BASE}/unload", headers=STUDENT).json()

    assert resp["warning"] == "Your test progress may be lost if you leave this page."
    # the background submit finishes on the app loop before the next request is served
    state = client.get(f"{BASE}/attempt", headers=STUDENT).json()
    assert state["phase"] == "submitted"
    assert len(backend.results) == 1


def test_ended_test_is_blocked(client):
    resp = client.get("/api/tests/ended/attempt", headers=STUDENT).json()

    assert resp["phase"] == "blocked"
    assert resp["test_error"] == "This test has ended"


def test_remount_after_close_resumes(client):
    client.get(f"{BASE}/attempt", headers=STUDENT)
    first = client.post(f"{BASE}/start", headers=STUDENT).json()

    client.delete(f"{BASE}/attempt", headers=STUDENT)
    again = client.get(f"{BASE}/attempt", headers=STUDENT).json()

    assert again["phase"] == "in_progress"
    assert again["attempt"]["attempt_id"] == first["attempt"]["attempt_id"]


class OutageBackend(InMemoryBackend):
    """Selected queries fail with a transient error while the flags are on."""

    def __init__(self, *args, tests_down=False, attempts_down=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.tests_down = tests_down
        self.attempts_down = attempts_down

    async def fetch_test(self, test_id):
        if self.tests_down:
            raise TransientBackendError("database unreachable")
        return await super().fetch_test(test_id)

    async def fetch_latest_attempt(self, test_id, student_id):
        if self.attempts_down:
            raise TransientBackendError("database unreachable")
        return await super().fetch_latest_attempt(test_id, student_id)


def test_attempt_lookup_outage_shows_intro():
    backend = OutageBackend(tests=build_sample_tests(), attempts_down=True, shuffle=False)
    with TestClient(create_app(backend)) as c:
        first = c.get(f"{BASE}/attempt", headers=STUDENT)
        second = c.get(f"{BASE}/attempt", headers=STUDENT)

    assert first.status_code == 200
    assert first.json()["phase"] == "intro"
    assert second.json()["phase"] == "intro"


def test_blocked_load_failure_recovers_on_reopen():
    backend = OutageBackend(tests=build_sample_tests(), tests_down=True, shuffle=False)
    with TestClient(create_app(backend)) as c:
        blocked = c.get(f"{BASE}/attempt", headers=STUDENT).json()
        backend.tests_down = False
        reopened = c.get(f"{BASE}/attempt", headers=STUDENT).json()

    assert blocked["phase"] == "blocked"
    assert blocked["test_error"] == "Failed to load test"
    assert reopened["phase"] == "intro"
    assert reopened["test_error"] is None


def test_reset_closes_screens_and_keeps_role(client):
    headers = {"X-User-Id": "student-2"}
    client.post("/api/role", json={"role": "student"}, headers=headers)
    client.get(f"{BASE}/attempt", headers=headers)
    client.post(f"{BASE}/start", headers=headers)

    assert client.post("/api/reset").json() == {"ok": True}

    assert client.post(f"{BASE}/start", headers=headers).status_code == 404
    assert client.get("/api/me", headers=headers).json()["role"] == "student"
