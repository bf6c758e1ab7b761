"""Tests for the blink debouncer."""

from __future__ import annotations

from blink_detection.blink_debouncer import BlinkDebouncer, BlinkEvent, EyeState
from blink_detection.config import SessionConfig


def _feed(debouncer, samples, step_ms=33):
    return [debouncer.update(ear, i * step_ms) for i, ear in enumerate(samples)]


def test_one_event_after_sustained_closure() -> None:
    outputs = _feed(BlinkDebouncer(), [0.3, 0.3, 0.3, 0.1, 0.1, 0.1, 0.3])

    assert outputs[:6] == [None] * 6
    assert outputs[6] == BlinkEvent(timestamp_ms=6 * 33, ear_value=0.3)


def test_short_closure_is_ignored() -> None:
    outputs = _feed(BlinkDebouncer(), [0.1, 0.1, 0.3, 0.1, 0.3])
    assert all(o is None for o in outputs)


def test_no_event_while_still_closed() -> None:
    outputs = _feed(BlinkDebouncer(), [0.1] * 20)
    assert all(o is None for o in outputs)


def test_one_event_per_cycle() -> None:
    cycle = [0.1, 0.1, 0.1, 0.3, 0.3]
    outputs = _feed(BlinkDebouncer(), cycle * 3)
    assert sum(1 for o in outputs if o is not None) == 3


def test_state_transitions() -> None:
    debouncer = BlinkDebouncer()
    assert debouncer.state is EyeState.OPEN

    debouncer.update(0.1, 0)
    assert debouncer.state is EyeState.CLOSING

    debouncer.update(0.1, 33)
    debouncer.update(0.1, 66)
    assert debouncer.state is EyeState.CLOSED

    debouncer.update(0.3, 99)
    assert debouncer.state is EyeState.OPEN


def test_open_frames_requires_sustained_reopening() -> None:
    debouncer = BlinkDebouncer(open_frames=2)

    outputs = _feed(debouncer, [0.1, 0.1, 0.1, 0.3, 0.3])

    assert outputs[3] is None
    assert outputs[4] is not None


def test_stale_closure_is_cleared() -> None:
    debouncer = BlinkDebouncer(consecutive_frames=3, reset_frames=4)

    outputs = _feed(debouncer, [0.1, 0.1, 0.1, 0.1, 0.1, 0.3])

    assert all(o is None for o in outputs)


def test_reset_clears_latch() -> None:
    debouncer = BlinkDebouncer()
    _feed(debouncer, [0.1, 0.1, 0.1])

    debouncer.reset()

    assert debouncer.state is EyeState.OPEN
    assert debouncer.update(0.3, 1000) is None


def test_from_config() -> None:
    debouncer = BlinkDebouncer.from_config(SessionConfig(EAR_THRESHOLD=0.25, CONSECUTIVE_FRAMES=2))

    assert debouncer.ear_threshold == 0.25
    assert debouncer.consecutive_frames == 2
