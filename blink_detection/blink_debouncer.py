"""
Blink Debouncer - the one place where "a blink" is defined.

EAR samples are turned into discrete BlinkEvents: the eye must stay below the
EAR threshold for CONSECUTIVE_FRAMES samples before it latches closed, and the
event is emitted on the first open sample after the latch.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import SessionConfig

logger = logging.getLogger("spybridge.core.debouncer")


class EyeState(str, Enum):
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class BlinkEvent:
    """One completed closed -> open cycle"""
    timestamp_ms: int
    ear_value: float


class BlinkDebouncer:
    def __init__(self, ear_threshold: float = 0.2, consecutive_frames: int = 3,
                 open_frames: int = 1, reset_frames: int = 90):
        self.ear_threshold = ear_threshold
        self.consecutive_frames = consecutive_frames
        self.open_frames = open_frames
        self.reset_frames = reset_frames
        self.reset()

    @classmethod
    def from_config(cls, config: SessionConfig) -> "BlinkDebouncer":
        return cls(
            ear_threshold=config.EAR_THRESHOLD,
            consecutive_frames=config.CONSECUTIVE_FRAMES,
            open_frames=config.OPEN_FRAMES,
            reset_frames=config.RESET_FRAMES,
        )

    def reset(self):
        self.frames_closed = 0
        self.frames_open = 0
        self.frames_since_event = 0
        self.latched_closed = False

    @property
    def state(self) -> EyeState:
        if self.latched_closed:
            return EyeState.CLOSED
        if self.frames_closed > 0:
            return EyeState.CLOSING
        return EyeState.OPEN

    def update(self, ear: float, timestamp_ms: int) -> Optional[BlinkEvent]:
        """Feed one sample; returns the BlinkEvent completed by it, if any."""
        self.frames_since_event += 1

        # Staleness guard: a noisy stream must not keep the latch forever
        if self.frames_since_event > self.reset_frames:
            if self.latched_closed or self.frames_closed:
                logger.debug("Debouncer stale after %d samples, clearing closure state",
                             self.frames_since_event)
            self.frames_closed = 0
            self.frames_open = 0
            self.latched_closed = False
            self.frames_since_event = 0

        if ear < self.ear_threshold:
            self.frames_closed += 1
            self.frames_open = 0
            if not self.latched_closed and self.frames_closed >= self.consecutive_frames:
                self.latched_closed = True
                logger.debug("Eyes closed (EAR: %.3f)", ear)
            return None

        self.frames_open += 1
        if self.latched_closed:
            if self.frames_open < self.open_frames:
                return None
            self.latched_closed = False
            self.frames_closed = 0
            self.frames_since_event = 0
            logger.debug("Blink detected (EAR: %.3f)", ear)
            return BlinkEvent(timestamp_ms=int(timestamp_ms), ear_value=float(ear))

        # Open sample without a latch breaks the closed run
        self.frames_closed = 0
        return None
