"""
Cancellable one-shot scheduled actions (simulation ticks, auto-stop).
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger("spybridge.core.scheduler")


class ScheduledAction:
    """Handle for one pending callback. Cancelling is idempotent."""

    def __init__(self, callback: Callable[[], None], name: str = "action"):
        self.name = name
        self._callback = callback
        self._cancelled = threading.Event()
        self._fired = threading.Event()
        self._timer: Optional[threading.Timer] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def fired(self) -> bool:
        return self._fired.is_set()

    def cancel(self):
        self._cancelled.set()
        if self._timer is not None:
            self._timer.cancel()

    def run(self):
        # A timer can already be running when cancel() is called
        if self._cancelled.is_set():
            return
        self._fired.set()
        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled action %r failed", self.name)


class TimerScheduler:
    """Runs each action once on a daemon threading.Timer"""

    def schedule(self, delay_s: float, callback: Callable[[], None],
                 name: str = "action") -> ScheduledAction:
        action = ScheduledAction(callback, name=name)
        timer = threading.Timer(max(0.0, delay_s), action.run)
        timer.name = f"spybridge-{name}"
        timer.daemon = True
        action._timer = timer
        timer.start()
        return action
