"""Tests for the whole-test and per-question countdowns."""

from datetime import timedelta

import pytest

from quizmaster.services.timers import PerQuestionTimer, WholeTestTimer, format_clock, is_low_time


class TestWholeTestTimer:

    def test_resume_uses_server_start(self, clock):
        started_at = clock.dt()
        clock.advance(65)
        timer = WholeTestTimer(10, on_expire=lambda: None, clock=clock)

        assert timer.sync(started_at) == 535

    def test_sync_recomputes_each_mount(self, clock):
        started_at = clock.dt()
        timer = WholeTestTimer(10, on_expire=lambda: None, clock=clock)
        timer.sync(started_at)
        for _ in range(5):
            timer.tick()
        clock.advance(100)

        assert timer.sync(started_at) == 500

    def test_naive_started_at_is_utc(self, clock):
        started_at = clock.dt().replace(tzinfo=None)
        clock.advance(65)
        timer = WholeTestTimer(5, on_expire=lambda: None, clock=clock)

        assert timer.sync(started_at) == 235

    def test_start_in_future_clamped(self, clock):
        timer = WholeTestTimer(1, on_expire=lambda: None, clock=clock)

        assert timer.sync(clock.dt() + timedelta(seconds=30)) == 60

    def test_long_past_start_is_zero(self, clock):
        started_at = clock.dt()
        clock.advance(3600)
        timer = WholeTestTimer(5, on_expire=lambda: None, clock=clock)

        assert timer.sync(started_at) == 0

    def test_expires_exactly_once(self, clock):
        calls = []
        timer = WholeTestTimer(1, on_expire=lambda: calls.append(1), clock=clock)
        timer.remaining = 2

        timer.tick()
        assert timer.remaining == 1
        timer.tick()
        timer.tick()
        timer.tick()

        assert timer.remaining == 0
        assert timer.expired
        assert calls == [1]

    def test_inactive_tick_is_noop(self, clock):
        calls = []
        timer = WholeTestTimer(1, on_expire=lambda: calls.append(1), is_active=lambda: False, clock=clock)
        timer.remaining = 1

        timer.tick()

        assert timer.remaining == 1
        assert calls == []


class TestPerQuestionTimer:

    def _timer(self, budget=30, count=3, active=lambda: True):
        timeouts = []
        timer = PerQuestionTimer(budget, count, on_timeout=timeouts.append, is_active=active)
        timer.initialize()
        return timer, timeouts

    def test_snapshot_survives_navigation(self):
        timer, _ = self._timer()
        for _ in range(12):
            timer.tick()

        timer.focus(1)
        assert timer.remaining == 30
        timer.focus(0)

        assert timer.remaining == 18

    def test_ticks_only_active_question(self):
        timer, _ = self._timer()
        timer.focus(2)
        for _ in range(5):
            timer.tick()

        assert timer.time_left(2) == 25
        assert timer.time_left(0) == 30
        assert timer.time_left(1) == 30

    def test_initialize_only_once(self):
        timer, _ = self._timer()
        for _ in range(4):
            timer.tick()

        assert timer.initialize() is False
        assert timer.time_left(0) == 26

    def test_fresh_focus_resets_target(self):
        timer, _ = self._timer()
        timer.focus(1)
        for _ in range(10):
            timer.tick()
        timer.focus(0)

        timer.focus_fresh(1)

        assert timer.remaining == 30
        assert timer.time_left(1) == 30

    def test_timeout_locks_question(self):
        timer, timeouts = self._timer(budget=3)
        for _ in range(3):
            timer.tick()

        assert timeouts == [0]
        assert 0 in timer.timed_out
        # further ticks on a locked question change nothing
        timer.tick()
        assert timeouts == [0]
        assert timer.time_left(0) == 0

    def test_inactive_tick_is_noop(self):
        timer, timeouts = self._timer(budget=1, active=lambda: False)

        timer.tick()

        assert timer.remaining == 1
        assert timeouts == []


@pytest.mark.parametrize("seconds, expected", [(0, "00:00"), (59, "00:59"), (535, "08:55"), (-4, "00:00")])
def test_format_clock(seconds, expected):
    assert format_clock(seconds) == expected


def test_low_time():
    assert is_low_time(10, threshold=60)
    assert not is_low_time(60, threshold=60)
