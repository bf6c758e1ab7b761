"""Tests for the blink session orchestrator."""

from __future__ import annotations

from unittest import mock

import numpy as np
import pytest

from blink_detection.config import SessionConfig
from blink_detection.pattern_analyzer import BlinkPattern
from blink_detection.session import (
    FINAL_STATUS_CHEATING,
    FINAL_STATUS_CLEAN,
    BlinkSession,
)
from conftest import CLOSED_EYE, IMAGE_SIZE, OPEN_EYE, build_tensor

FRAME_MS = 33
CLOSED = build_tensor([CLOSED_EYE])
OPEN = build_tensor([OPEN_EYE])


def _session(clock, scheduler, **overrides) -> BlinkSession:
    return BlinkSession(SessionConfig(**overrides), simulate=False, clock=clock, scheduler=scheduler)


def _feed(session, clock, tensors):
    result = None
    for tensor in tensors:
        clock.advance(FRAME_MS)
        result = session.process_tensor(tensor, IMAGE_SIZE, IMAGE_SIZE)
    return result


def _blink(session, clock):
    return _feed(session, clock, [CLOSED] * 3 + [OPEN])


def test_closed_then_open_counts_one_blink(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()

    _feed(session, clock, [CLOSED] * 10)
    result = _feed(session, clock, [OPEN])

    assert result.blink_count == 1
    assert result.blink_detected
    assert result.classification is BlinkPattern.INSUFFICIENT_DATA
    assert session.stop() == FINAL_STATUS_CLEAN


def test_frame_result_reports_detection(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()

    result = _feed(session, clock, [CLOSED])

    assert result.eyes_detected
    assert len(result.detections) == 1
    assert result.ear_value == pytest.approx(31 / 250)
    assert result.timestamp_ms == clock.now_ms


def test_no_detection_reads_as_open(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()

    result = _feed(session, clock, [build_tensor([])])

    assert not result.eyes_detected
    assert result.ear_value == 1.0


def test_inactive_session_ignores_frames(clock, scheduler) -> None:
    session = _session(clock, scheduler)

    before = session.snapshot()
    result = _feed(session, clock, [CLOSED] * 5 + [OPEN])

    assert result is before
    assert session.status()["frames_processed"] == 0


def test_quick_blinks_are_flagged(clock, scheduler) -> None:
    alerts = []
    session = BlinkSession(SessionConfig(), simulate=False, clock=clock, scheduler=scheduler,
                           on_suspicious=alerts.append)
    session.start()

    for _ in range(3):
        result = _blink(session, clock)

    assert result.classification is BlinkPattern.CODED
    assert result.suspicious
    assert len(alerts) == 1
    assert session.stop() == FINAL_STATUS_CHEATING


def test_suspicious_flag_latches(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    for _ in range(3):
        _blink(session, clock)

    # The burst leaves the window; later blinks classify as normal
    for pause in (70_000, 3_000, 9_000):
        clock.advance(pause)
        result = _blink(session, clock)

    assert result.classification is BlinkPattern.NORMAL
    assert result.suspicious
    assert session.final_status == FINAL_STATUS_CHEATING


def test_clock_stepping_back_keeps_counting(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    _blink(session, clock)
    first_blink_ms = session.status()["last_blink_ms"]

    clock.advance(-5_000)
    result = _blink(session, clock)

    status = session.status()
    assert result.blink_count == 2
    assert status["events_in_window"] == 2
    assert status["last_blink_ms"] == first_blink_ms


def test_status_reports_last_blink_time(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    assert session.status()["last_blink_ms"] is None

    _blink(session, clock)

    assert session.status()["last_blink_ms"] == clock.now_ms


def test_stop_keeps_counters(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    _blink(session, clock)

    session.stop()

    status = session.status()
    assert status["active"] is False
    assert status["blink_count"] == 1


def test_reset_clears_counters_and_stays_active(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    for _ in range(3):
        _blink(session, clock)

    session.reset()

    status = session.status()
    assert status["active"] is True
    assert status["blink_count"] == 0
    assert status["suspicious"] is False
    assert status["events_in_window"] == 0
    assert session.final_status == FINAL_STATUS_CLEAN


def test_start_clears_previous_session(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    _blink(session, clock)
    session.stop()

    session.start()

    assert session.status()["blink_count"] == 0
    assert session.snapshot().blink_count == 0


def test_frame_in_flight_drops_new_frames(clock, scheduler) -> None:
    inner_results = []

    def model(frame):
        # A second frame arriving while this one is still being measured
        inner_results.append(session.process_tensor(CLOSED, IMAGE_SIZE, IMAGE_SIZE))
        return CLOSED

    session = BlinkSession(SessionConfig(), model=model, clock=clock, scheduler=scheduler)
    session.start()
    before = session.snapshot()

    result = session.process_frame(np.zeros((IMAGE_SIZE, IMAGE_SIZE, 3), dtype=np.uint8))

    assert inner_results == [before]
    assert result.eyes_detected
    status = session.status()
    assert status["frames_dropped"] == 1
    assert status["frames_processed"] == 1


def test_model_failure_yields_no_detection(clock, scheduler) -> None:
    model = mock.Mock(side_effect=RuntimeError("inference failed"))
    session = BlinkSession(SessionConfig(), model=model, clock=clock, scheduler=scheduler)
    session.start()

    result = session.process_frame(np.zeros((480, 640, 3), dtype=np.uint8))

    model.assert_called_once()
    assert not result.eyes_detected
    assert result.detections == ()
    assert session.status()["frames_processed"] == 0


def test_process_frame_uses_frame_size(clock, scheduler) -> None:
    model = mock.Mock(return_value=OPEN[np.newaxis])
    session = BlinkSession(SessionConfig(), model=model, clock=clock, scheduler=scheduler)
    session.start()

    result = session.process_frame(np.zeros((500, 2000, 3), dtype=np.uint8))

    det = result.detections[0]
    assert (det.x_min, det.width) == (750, 500)
    assert (det.y_min, det.height) == (218, 63)


def test_landmarks_average_both_eyes(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    wide = [(0, 0), (1, 1), (2, 1), (3, 0), (2, -1), (1, -1)]     # 0.667
    narrow = [(0, 0), (1, 0.1), (2, 0.1), (3, 0), (2, -0.1), (1, -0.1)]  # 0.0667

    result = session.process_landmarks(wide, narrow, [(0, 0)])

    assert result.eyes_detected
    assert result.ear_value == pytest.approx((4 / 6 + 0.4 / 6) / 2)


def test_landmark_blink(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    closed = [(0, 0), (1, 0.1), (2, 0.1), (3, 0), (2, -0.1), (1, -0.1)]
    opened = [(0, 0), (1, 1), (2, 1), (3, 0), (2, -1), (1, -1)]

    for eye in [closed] * 3 + [opened]:
        clock.advance(FRAME_MS)
        result = session.process_landmarks(eye)

    assert result.blink_count == 1


def test_no_landmarks_means_no_eyes(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()

    result = session.process_landmarks()

    assert not result.eyes_detected
    assert result.ear_value == 1.0


def test_auto_stop_fires_after_suspicious(clock, scheduler) -> None:
    on_auto_stop = mock.Mock()
    session = BlinkSession(SessionConfig(AUTO_STOP_DELAY_S=5.0), simulate=False, clock=clock,
                           scheduler=scheduler, on_auto_stop=on_auto_stop)
    session.start()
    for _ in range(3):
        _blink(session, clock)

    assert session.auto_stop_pending
    assert scheduler.scheduled[0][0] == 5.0

    scheduler.fire_next("auto-stop")

    assert not session.active
    on_auto_stop.assert_called_once_with(FINAL_STATUS_CHEATING)


def test_auto_stop_scheduled_once(clock, scheduler) -> None:
    session = _session(clock, scheduler, AUTO_STOP_DELAY_S=5.0)
    session.start()
    for _ in range(5):
        _blink(session, clock)

    assert len(scheduler.pending("auto-stop")) == 1


@pytest.mark.parametrize("action", ["stop", "reset", "start"])
def test_auto_stop_cancelled_by_lifecycle(clock, scheduler, action) -> None:
    on_auto_stop = mock.Mock()
    session = BlinkSession(SessionConfig(AUTO_STOP_DELAY_S=5.0), simulate=False, clock=clock,
                           scheduler=scheduler, on_auto_stop=on_auto_stop)
    session.start()
    for _ in range(3):
        _blink(session, clock)
    _, pending = scheduler.scheduled[0]

    getattr(session, action)()
    pending.run()

    assert pending.cancelled
    assert not session.auto_stop_pending
    on_auto_stop.assert_not_called()
    if action != "stop":
        assert session.active


def test_auto_stop_disabled_by_default(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    for _ in range(3):
        _blink(session, clock)

    assert scheduler.pending() == []


def test_suspicious_callback_failure_is_contained(clock, scheduler) -> None:
    session = BlinkSession(SessionConfig(), simulate=False, clock=clock, scheduler=scheduler,
                           on_suspicious=mock.Mock(side_effect=RuntimeError("boom")))
    session.start()

    for _ in range(3):
        result = _blink(session, clock)

    assert result.suspicious


def test_status_and_snapshot_serialise(clock, scheduler) -> None:
    session = _session(clock, scheduler)
    session.start()
    _blink(session, clock)

    status = session.status()
    data = session.snapshot().to_dict()

    assert status["final_status"] == FINAL_STATUS_CLEAN
    assert status["eye_state"] == "OPEN"
    assert status["analysis"]["count"] == 1
    assert data["blink_count"] == 1
    assert data["classification"] == "INSUFFICIENT_DATA"
    assert data["detections"][0]["bbox"] == [375, 437, 625, 562]
