"""Tests for timer-backed scheduled actions."""

from __future__ import annotations

import threading

from blink_detection.scheduler import ScheduledAction, TimerScheduler


def test_timer_runs_callback() -> None:
    fired = threading.Event()

    TimerScheduler().schedule(0.01, fired.set, name="test")

    assert fired.wait(timeout=2.0)


def test_cancelled_action_does_not_run() -> None:
    calls = []
    action = ScheduledAction(lambda: calls.append(1))

    action.cancel()
    action.run()

    assert calls == []
    assert action.cancelled


def test_failing_callback_is_contained() -> None:
    def boom() -> None:
        raise RuntimeError("boom")

    ScheduledAction(boom, name="boom").run()


def test_run_marks_action_fired() -> None:
    action = ScheduledAction(lambda: None, name="tick")
    assert not action.fired

    action.run()

    assert action.fired
    assert not action.cancelled
