"""Shared fakes for blink detection tests."""

from __future__ import annotations

from typing import Callable, Iterable, List, Tuple

import numpy as np
import pytest

from blink_detection.scheduler import ScheduledAction

# (cx, cy, w, h, class_id, confidence), box values normalised to 0..1
Box = Tuple[float, float, float, float, int, float]

# 1000x1000 image: closed eye box is 250x31 px (EAR 0.124), open is 250x125 (EAR 0.5)
IMAGE_SIZE = 1000
CLOSED_EYE: Box = (0.5, 0.5, 0.25, 0.03125, 1, 0.9)
OPEN_EYE: Box = (0.5, 0.5, 0.25, 0.125, 0, 0.9)


class FakeClock:
    def __init__(self, start_ms: int = 0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeScheduler:
    """Records actions instead of starting timers; tests fire them by hand."""

    def __init__(self) -> None:
        self.scheduled: List[Tuple[float, ScheduledAction]] = []

    def schedule(self, delay_s: float, callback: Callable[[], None], name: str = "action") -> ScheduledAction:
        action = ScheduledAction(callback, name=name)
        self.scheduled.append((delay_s, action))
        return action

    def pending(self, name: str | None = None) -> List[ScheduledAction]:
        return [a for _, a in self.scheduled if not a.cancelled and (name is None or a.name == name)]

    def fire_next(self, name: str | None = None) -> ScheduledAction:
        action = self.pending(name)[0]
        self.scheduled = [(d, a) for d, a in self.scheduled if a is not action]
        action.run()
        return action


def build_tensor(boxes: Iterable[Box], num_boxes: int = 8400, num_classes: int = 4) -> np.ndarray:
    tensor = np.zeros((4 + num_classes, num_boxes), dtype=np.float32)
    for i, (cx, cy, w, h, class_id, confidence) in enumerate(boxes):
        tensor[0:4, i] = (cx, cy, w, h)
        tensor[4 + class_id, i] = confidence
    return tensor


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start_ms=10_000)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def make_tensor() -> Callable[..., np.ndarray]:
    return build_tensor
