"""
SpyBridge Blink Service
Wraps blink_detection.BlinkSession into an async service for the API.
The session (and the eye model / landmark source feeding it) is created ONCE
and reused across requests and WebSocket clients.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from app.core.config import settings
from app.services.websocket_manager import ws_manager
from blink_detection import BlinkSession, FrameResult, PatternAnalysis, SessionConfig

logger = logging.getLogger("spybridge.service")

EAR_SOURCES = ("detector", "landmarks")


class BlinkService:
    """
    Singleton service around one BlinkSession.

    - Loads the frame source (YOLO eye model or MediaPipe landmarks) lazily;
      if it is unavailable the session runs in simulation mode.
    - Offloads per-frame CPU work to a thread-pool executor.
    - Pushes suspicious classifications and auto-stops to the ``alerts``
      WebSocket channel from whatever thread they happen on.
    """

    _instance: Optional["BlinkService"] = None

    @classmethod
    def get_instance(cls) -> "BlinkService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def set_instance(cls, service: Optional["BlinkService"]):
        cls._instance = service

    def __init__(self, config: Optional[SessionConfig] = None, model: Any = None,
                 landmark_source: Any = None, ear_source: Optional[str] = None,
                 load_sources: bool = True, simulate: Optional[bool] = None):
        self.config = config or settings.session_config()
        self.ear_source = ear_source or settings.EAR_SOURCE
        if self.ear_source not in EAR_SOURCES:
            raise ValueError(f"EAR_SOURCE must be one of {EAR_SOURCES}, got {self.ear_source!r}")

        self.model = model
        self.landmark_source = landmark_source
        if load_sources:
            self._load_sources()

        if simulate is None:
            simulate = self.config.SIMULATE_WHEN_UNAVAILABLE and not self.source_available
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.session = BlinkSession(
            self.config,
            model=self.model if self.ear_source == "detector" else None,
            simulate=simulate,
            on_suspicious=self._on_suspicious,
            on_auto_stop=self._on_auto_stop,
        )

    # ──────────────────────────────────────────────────────
    # Initialisation
    # ──────────────────────────────────────────────────────

    def _load_sources(self):
        if self.ear_source == "detector" and self.model is None:
            try:
                from app.services.eye_model import EyeModelRunner
                runner = EyeModelRunner(settings.weights_path, input_size=self.config.INPUT_SIZE)
                self.model = runner if runner.is_available else None
            except Exception as e:
                logger.error(f"Eye model unavailable: {e}")
                self.model = None
        elif self.ear_source == "landmarks" and self.landmark_source is None:
            from app.services.landmark_service import get_landmark_service
            source = get_landmark_service()
            self.landmark_source = source if source.is_available else None

    @property
    def model_available(self) -> bool:
        return self.model is not None

    @property
    def landmarks_available(self) -> bool:
        return self.landmark_source is not None

    @property
    def source_available(self) -> bool:
        if self.ear_source == "landmarks":
            return self.landmarks_available
        return self.model_available

    def bind_loop(self, loop: asyncio.AbstractEventLoop):
        """Event loop that alert broadcasts are scheduled onto."""
        self._loop = loop

    def _ensure_loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

    # ──────────────────────────────────────────────────────
    # Session control
    # ──────────────────────────────────────────────────────

    async def start(self) -> Dict[str, Any]:
        self._ensure_loop()
        self.session.start()
        return self.status()

    async def stop(self) -> str:
        self._ensure_loop()
        return self.session.stop()

    async def reset(self) -> Dict[str, Any]:
        self.session.reset()
        return self.status()

    def status(self) -> Dict[str, Any]:
        status = self.session.status()
        status["ear_source"] = self.ear_source
        return status

    def info(self) -> Dict[str, Any]:
        return {
            "model_available": self.model_available,
            "landmarks_available": self.landmarks_available,
            "simulation_mode": self.session.simulation_mode,
            "ear_source": self.ear_source,
            "config": self.config.to_dict(),
        }

    # ──────────────────────────────────────────────────────
    # Frame processing
    # ──────────────────────────────────────────────────────

    def process_frame_sync(self, frame: np.ndarray) -> FrameResult:
        if self.ear_source == "landmarks" and self.landmark_source is not None:
            eyes = self.landmark_source.eyes(frame)
            return self.session.process_landmarks(*eyes)
        return self.session.process_frame(frame)

    async def process_frame(self, frame: np.ndarray) -> Dict[str, Any]:
        """Async wrapper, offloads model / MediaPipe work to a thread."""
        self._ensure_loop()
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.process_frame_sync, frame)
        return result.to_dict()

    async def process_tensor(self, tensor: Any, image_width: int, image_height: int) -> Dict[str, Any]:
        self._ensure_loop()
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, self.session.process_tensor, tensor, image_width, image_height
        )
        return result.to_dict()

    async def process_landmarks(self, eyes: Sequence[Sequence[Sequence[float]]]) -> Dict[str, Any]:
        self._ensure_loop()
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, lambda: self.session.process_landmarks(*eyes))
        return result.to_dict()

    # ──────────────────────────────────────────────────────
    # Alerts (called from worker / timer threads)
    # ──────────────────────────────────────────────────────

    def _dispatch(self, coro_factory):
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop bound, alert not broadcast")
            return
        try:
            asyncio.run_coroutine_threadsafe(coro_factory(), loop)
        except RuntimeError as e:
            logger.warning(f"Alert broadcast failed: {e}")

    def _on_suspicious(self, analysis: PatternAnalysis):
        alert = {
            "alert_type": "suspicious_blink_pattern",
            "severity": "critical",
            "message": f"Suspicious blink pattern: {analysis.classification.label}",
            "analysis": analysis.to_dict(),
        }
        self._dispatch(lambda: ws_manager.send_alert(alert))

    def _on_auto_stop(self, final_status: str):
        alert = {
            "alert_type": "auto_stop",
            "severity": "critical",
            "message": f"Session stopped automatically: {final_status}",
            "final_status": final_status,
        }

        async def broadcast():
            await ws_manager.send_alert(alert)
            await ws_manager.send_session_stopped(final_status)

        self._dispatch(broadcast)

    # ──────────────────────────────────────────────────────
    # Cleanup
    # ──────────────────────────────────────────────────────

    def cleanup(self):
        if self.session.active:
            self.session.stop()
        if self.landmark_source is not None and hasattr(self.landmark_source, "cleanup"):
            self.landmark_source.cleanup()
        logger.info("Blink service cleaned up")


def eyes_from_payload(eyes: List[List[List[float]]]) -> List[List[tuple]]:
    """JSON eye point lists -> lists of (x, y) tuples."""
    return [[(float(p[0]), float(p[1])) for p in eye if len(p) >= 2] for eye in eyes]


# ── Singleton accessor ───────────────────────────────────

def get_blink_service() -> BlinkService:
    return BlinkService.get_instance()
