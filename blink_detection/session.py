"""
Blink Session - headless orchestrator.

Runs decoder -> EAR extractor -> blink debouncer -> pattern analyzer for each
incoming frame and owns the only mutable session-wide state. Safe to feed
from a capture thread while another thread polls ``snapshot()``.

Usage:
    session = BlinkSession(SessionConfig())
    session.start()
    result = session.process_tensor(raw_output, 640, 480)
    print(result.to_dict())
    print(session.stop())   # "Cheating detected" / "No cheating detected"
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple

from .blink_debouncer import BlinkDebouncer, BlinkEvent
from .config import SessionConfig
from .decoder import Detection, DetectionDecoder
from .ear import EAR_OPEN, EARCalculator
from .pattern_analyzer import BlinkPattern, PatternAnalysis, PatternAnalyzer
from .scheduler import ScheduledAction, TimerScheduler
from .simulation import BlinkSimulator

logger = logging.getLogger("spybridge.core.session")

FINAL_STATUS_CHEATING = "Cheating detected"
FINAL_STATUS_CLEAN = "No cheating detected"

# Placeholder eye box reported while simulating
SIMULATED_EYE_BOX = Detection(x_min=100, y_min=100, width=100, height=50, confidence=1.0, class_id=0)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass(frozen=True)
class FrameResult:
    """Immutable per-frame snapshot handed to callers"""
    detections: Tuple[Detection, ...] = ()
    ear_value: float = EAR_OPEN
    blink_count: int = 0
    suspicious: bool = False
    classification: BlinkPattern = BlinkPattern.NO_BLINKS
    eyes_detected: bool = False
    blink_detected: bool = False
    simulated: bool = False
    timestamp_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detections": [d.to_dict() for d in self.detections],
            "ear_value": round(self.ear_value, 4),
            "blink_count": self.blink_count,
            "suspicious": self.suspicious,
            "classification": self.classification.name,
            "pattern": self.classification.label,
            "eyes_detected": self.eyes_detected,
            "blink_detected": self.blink_detected,
            "simulated": self.simulated,
            "timestamp_ms": self.timestamp_ms,
        }


@dataclass
class SessionState:
    """Everything one session mutates; replaced wholesale on start/reset"""
    debouncer: BlinkDebouncer
    analyzer: PatternAnalyzer
    generation: int = 0
    active: bool = False
    blink_count: int = 0
    suspicious_detected: bool = False
    ear_value: float = EAR_OPEN
    frames_processed: int = 0
    frames_dropped: int = 0
    last_blink_ms: Optional[int] = None

    @classmethod
    def fresh(cls, config: SessionConfig, active: bool = False, generation: int = 0) -> "SessionState":
        return cls(
            debouncer=BlinkDebouncer.from_config(config),
            analyzer=PatternAnalyzer(config),
            generation=generation,
            active=active,
        )

    @property
    def event_history(self) -> Deque[BlinkEvent]:
        return self.analyzer.events

    @property
    def last_analysis(self) -> PatternAnalysis:
        return self.analyzer.last_analysis

    @property
    def last_classification(self) -> BlinkPattern:
        return self.analyzer.last_analysis.classification


# (detections, ear, eyes_detected) computed for one frame
FrameMeasurement = Tuple[List[Detection], float, bool]


class BlinkSession:
    """
    Session orchestrator: Idle -> Active -> Idle.

    ``model`` is the external detector, a callable ``frame -> raw tensor``.
    Without one the session runs in simulation mode (unless disabled), which
    is reported by ``simulation_mode`` and by every snapshot.
    """

    def __init__(self, config: Optional[SessionConfig] = None,
                 model: Optional[Callable[[Any], Any]] = None,
                 simulate: Optional[bool] = None,
                 clock: Optional[Callable[[], int]] = None,
                 scheduler: Optional[TimerScheduler] = None,
                 on_suspicious: Optional[Callable[[PatternAnalysis], None]] = None,
                 on_auto_stop: Optional[Callable[[str], None]] = None):
        self.config = config or SessionConfig()
        self._model = model
        self._clock = clock or monotonic_ms
        self._scheduler = scheduler or TimerScheduler()
        self._on_suspicious = on_suspicious
        self._on_auto_stop = on_auto_stop
        self._decoder = DetectionDecoder(self.config)

        if simulate is None:
            simulate = model is None and self.config.SIMULATE_WHEN_UNAVAILABLE
        self.simulation_mode = bool(simulate)
        self._simulator: Optional[BlinkSimulator] = None
        if self.simulation_mode:
            self._simulator = BlinkSimulator(self.config, self._simulated_blink, self._scheduler)
            logger.warning("No detection model available - running in SIMULATION mode")

        self._state_lock = threading.RLock()
        self._frame_lock = threading.Lock()
        self._generation = 0
        self._state = SessionState.fresh(self.config)
        self._snapshot = FrameResult(simulated=self.simulation_mode)
        self._auto_stop_action: Optional[ScheduledAction] = None

    # ──────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────

    @property
    def active(self) -> bool:
        with self._state_lock:
            return self._state.active

    def start(self):
        """Clear all session state and begin accepting frames."""
        with self._state_lock:
            self._replace_state_locked(active=True)
        if self._simulator is not None:
            self._simulator.start()
        logger.info("Detection started (simulation=%s)", self.simulation_mode)

    def stop(self) -> str:
        """Stop accepting frames. Counters are kept for display."""
        return self._stop(generation=None)

    def reset(self):
        """Clear counters and history; an active session stays active."""
        with self._state_lock:
            self._replace_state_locked(active=self._state.active)
        logger.info("Detection state reset")

    def _replace_state_locked(self, active: bool):
        self._cancel_auto_stop_locked()
        self._generation += 1
        self._state = SessionState.fresh(self.config, active=active, generation=self._generation)
        self._snapshot = FrameResult(simulated=self.simulation_mode, timestamp_ms=self._clock())

    def _stop(self, generation: Optional[int]) -> Optional[str]:
        with self._state_lock:
            if generation is not None and (generation != self._state.generation or not self._state.active):
                return None
            self._state.active = False
            self._cancel_auto_stop_locked()
            status = self._final_status_locked()
        if self._simulator is not None:
            self._simulator.stop()
        logger.info("Detection stopped with status: %s", status)
        return status

    # ──────────────────────────────────────────────────────
    # Frame processing
    # ──────────────────────────────────────────────────────

    def process_tensor(self, tensor: Any, image_width: int, image_height: int) -> FrameResult:
        """Decode a raw detector output and run it through the pipeline."""
        def measure() -> FrameMeasurement:
            detections = self._decoder.decode(tensor, image_width, image_height)
            if not detections:
                return [], EAR_OPEN, False
            # Highest-confidence eye drives the EAR
            return detections, EARCalculator.from_box(detections[0]), True

        return self._run_frame(measure)

    def process_landmarks(self, *eyes: Sequence[Sequence[float]]) -> FrameResult:
        """Feed one or more eyes given as six ordered landmark points each."""
        def measure() -> FrameMeasurement:
            measurable = [eye for eye in eyes if len(eye) >= 6]
            if not measurable:
                return [], EAR_OPEN, False
            ear = sum(EARCalculator.from_landmarks(eye) for eye in measurable) / len(measurable)
            return [], ear, True

        return self._run_frame(measure)

    def process_frame(self, frame: Any) -> FrameResult:
        """Run the external model on an image frame (H x W x C array)."""
        if self.simulation_mode:
            return self._simulated_frame()
        if self._model is None:
            return self._run_frame(lambda: ([], EAR_OPEN, False))

        def measure() -> FrameMeasurement:
            frame_height, frame_width = frame.shape[:2]
            tensor = self._model(frame)
            detections = self._decoder.decode(tensor, frame_width, frame_height)
            if not detections:
                return [], EAR_OPEN, False
            return detections, EARCalculator.from_box(detections[0]), True

        return self._run_frame(measure)

    def _run_frame(self, measure: Callable[[], FrameMeasurement]) -> FrameResult:
        with self._state_lock:
            if not self._state.active:
                return self._snapshot

        # One frame in flight per session; late frames are dropped, not queued
        if not self._frame_lock.acquire(blocking=False):
            with self._state_lock:
                self._state.frames_dropped += 1
                return self._snapshot

        try:
            with self._state_lock:
                generation = self._state.generation

            try:
                detections, ear, eyes_detected = measure()
            except Exception as e:
                logger.error(f"Frame processing error: {e}", exc_info=True)
                with self._state_lock:
                    return replace(self._snapshot, detections=(), ear_value=EAR_OPEN,
                                   eyes_detected=False, blink_detected=False)

            suspicious_analysis = None
            with self._state_lock:
                state = self._state
                if not state.active or state.generation != generation:
                    # Stopped or reset while this frame was being measured
                    return self._snapshot

                now = self._clock()
                state.ear_value = ear
                state.frames_processed += 1
                event = state.debouncer.update(ear, now)
                if event is not None:
                    suspicious_analysis = self._record_blink_locked(event)

                self._snapshot = FrameResult(
                    detections=tuple(detections),
                    ear_value=ear,
                    blink_count=state.blink_count,
                    suspicious=state.suspicious_detected,
                    classification=state.last_classification,
                    eyes_detected=eyes_detected,
                    blink_detected=event is not None,
                    simulated=self.simulation_mode,
                    timestamp_ms=now,
                )
                result = self._snapshot
        finally:
            self._frame_lock.release()

        if suspicious_analysis is not None:
            self._notify_suspicious(suspicious_analysis)
        return result

    def _record_blink_locked(self, event: BlinkEvent) -> Optional[PatternAnalysis]:
        """Count the blink and re-classify; returns the analysis if suspicious."""
        state = self._state
        events = state.event_history
        if events and event.timestamp_ms < events[-1].timestamp_ms:
            # Wall clocks can step backwards; keep the window time-ordered
            logger.warning("Clock went back %dms, clamping blink timestamp",
                           events[-1].timestamp_ms - event.timestamp_ms)
            event = replace(event, timestamp_ms=events[-1].timestamp_ms)
        analysis = state.analyzer.add_event(event)
        state.blink_count += 1
        state.last_blink_ms = event.timestamp_ms
        if not analysis.suspicious:
            return None

        if not state.suspicious_detected:
            logger.warning("Suspicious blink pattern detected: %s (blinks=%d)",
                           analysis.classification.label, state.blink_count)
        state.suspicious_detected = True
        self._schedule_auto_stop_locked()
        return analysis

    def _notify_suspicious(self, analysis: PatternAnalysis):
        if self._on_suspicious is None:
            return
        try:
            self._on_suspicious(analysis)
        except Exception:
            logger.exception("on_suspicious callback failed")

    # ──────────────────────────────────────────────────────
    # Simulation
    # ──────────────────────────────────────────────────────

    def _simulated_frame(self) -> FrameResult:
        with self._state_lock:
            if not self._state.active:
                return self._snapshot
            return replace(self._snapshot, detections=(SIMULATED_EYE_BOX,),
                           eyes_detected=True, blink_detected=False)

    def _simulated_blink(self):
        with self._state_lock:
            state = self._state
            if not state.active:
                return
            now = self._clock()
            analysis = self._record_blink_locked(BlinkEvent(timestamp_ms=now, ear_value=EAR_OPEN))
            self._snapshot = FrameResult(
                detections=(SIMULATED_EYE_BOX,),
                ear_value=state.ear_value,
                blink_count=state.blink_count,
                suspicious=state.suspicious_detected,
                classification=state.last_classification,
                eyes_detected=True,
                blink_detected=True,
                simulated=True,
                timestamp_ms=now,
            )
        logger.debug("Simulated blink (count=%d)", self._snapshot.blink_count)
        if analysis is not None:
            self._notify_suspicious(analysis)

    # ──────────────────────────────────────────────────────
    # Auto-stop
    # ──────────────────────────────────────────────────────

    def _schedule_auto_stop_locked(self):
        delay = self.config.AUTO_STOP_DELAY_S
        if delay <= 0 or self._auto_stop_action is not None:
            return
        generation = self._state.generation
        self._auto_stop_action = self._scheduler.schedule(
            delay, lambda: self._auto_stop(generation), name="auto-stop"
        )
        logger.info("Auto-stop scheduled in %.1fs", delay)

    def _cancel_auto_stop_locked(self):
        if self._auto_stop_action is not None:
            self._auto_stop_action.cancel()
            self._auto_stop_action = None

    def _auto_stop(self, generation: int):
        status = self._stop(generation=generation)
        if status is None:
            return
        logger.warning("Detection auto-stopped: %s", status)
        if self._on_auto_stop is not None:
            self._on_auto_stop(status)

    # ──────────────────────────────────────────────────────
    # Status
    # ──────────────────────────────────────────────────────

    def _final_status_locked(self) -> str:
        return FINAL_STATUS_CHEATING if self._state.suspicious_detected else FINAL_STATUS_CLEAN

    @property
    def final_status(self) -> str:
        with self._state_lock:
            return self._final_status_locked()

    @property
    def auto_stop_pending(self) -> bool:
        with self._state_lock:
            return self._auto_stop_action is not None

    def snapshot(self) -> FrameResult:
        with self._state_lock:
            return self._snapshot

    def status(self) -> Dict[str, Any]:
        with self._state_lock:
            state = self._state
            return {
                "active": state.active,
                "simulation_mode": self.simulation_mode,
                "blink_count": state.blink_count,
                "ear_value": round(state.ear_value, 4),
                "eye_state": state.debouncer.state.value,
                "suspicious": state.suspicious_detected,
                "classification": state.last_classification.name,
                "final_status": self._final_status_locked(),
                "frames_processed": state.frames_processed,
                "frames_dropped": state.frames_dropped,
                "last_blink_ms": state.last_blink_ms,
                "events_in_window": len(state.event_history),
                "auto_stop_pending": self._auto_stop_action is not None,
                "analysis": state.last_analysis.to_dict(),
            }
