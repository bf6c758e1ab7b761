"""
Simulation mode: synthesizes plausible blinks on a timer when no detection
model is available, so the rest of the pipeline can still be exercised.
"""

import logging
import threading
from typing import Callable, List, Optional

import numpy as np

from .config import SessionConfig
from .scheduler import ScheduledAction, TimerScheduler

logger = logging.getLogger("spybridge.core.simulation")


class BlinkSimulator:
    """
    Every SIM_MIN_DELAY_S..SIM_MAX_DELAY_S seconds a blink happens with
    SIM_BLINK_PROBABILITY; occasionally a second blink follows
    SIM_DOUBLE_BLINK_DELAY_S later to mimic a suspicious double.
    """

    def __init__(self, config: SessionConfig, on_blink: Callable[[], None],
                 scheduler: Optional[TimerScheduler] = None):
        self.config = config
        self.on_blink = on_blink
        self.scheduler = scheduler or TimerScheduler()
        self.rng = np.random.default_rng(config.SIM_SEED)
        self._lock = threading.Lock()
        self._pending: List[ScheduledAction] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        self.stop()
        with self._lock:
            self._running = True
            self._schedule_locked(self.config.SIM_FIRST_DELAY_S, self._tick, "sim-tick")
        logger.info("Blink simulation started")

    def stop(self):
        with self._lock:
            was_running = self._running
            self._running = False
            for action in self._pending:
                action.cancel()
            self._pending.clear()
        if was_running:
            logger.info("Blink simulation stopped")

    def _schedule_locked(self, delay_s: float, callback: Callable[[], None], name: str):
        self._pending = [a for a in self._pending if not (a.cancelled or a.fired)]
        action = self.scheduler.schedule(delay_s, callback, name=name)
        self._pending.append(action)

    def _tick(self):
        with self._lock:
            if not self._running:
                return
            blink = self.rng.random() < self.config.SIM_BLINK_PROBABILITY
            double = blink and self.rng.random() < self.config.SIM_DOUBLE_BLINK_PROBABILITY
            if double:
                self._schedule_locked(self.config.SIM_DOUBLE_BLINK_DELAY_S,
                                      self._follow_up, "sim-double")
            next_delay = self.rng.uniform(self.config.SIM_MIN_DELAY_S, self.config.SIM_MAX_DELAY_S)
            self._schedule_locked(next_delay, self._tick, "sim-tick")

        if blink:
            self.on_blink()

    def _follow_up(self):
        with self._lock:
            if not self._running:
                return
        self.on_blink()
