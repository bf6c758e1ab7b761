"""
SpyBridge Blink Detection Package
Blink-pattern cheating detection from an eye detector or face landmarks.

Usage (raw detector output, 1 x 8 x 8400):
    from blink_detection import BlinkSession, SessionConfig

    session = BlinkSession(SessionConfig(), model=eye_model)
    session.start()
    result = session.process_tensor(raw_output, 640, 480)
    print(result.to_dict())
    print(session.stop())

Usage (MediaPipe landmarks):
    from blink_detection import BlinkSession, both_eyes

    left, right = both_eyes(face_landmarks, frame_width, frame_height)
    result = session.process_landmarks(left, right)
"""

from .config import SessionConfig
from .decoder import Detection, DetectionDecoder, decode, non_max_suppression
from .ear import EARCalculator, EAR_OPEN
from .landmarks import FaceLandmarks, both_eyes, eye_points
from .blink_debouncer import BlinkDebouncer, BlinkEvent, EyeState
from .pattern_analyzer import BlinkPattern, PatternAnalysis, PatternAnalyzer, analyze_blink_pattern
from .session import (
    BlinkSession,
    FrameResult,
    SessionState,
    FINAL_STATUS_CHEATING,
    FINAL_STATUS_CLEAN,
)

__all__ = [
    "SessionConfig",
    "Detection",
    "DetectionDecoder",
    "decode",
    "non_max_suppression",
    "EARCalculator",
    "EAR_OPEN",
    "FaceLandmarks",
    "both_eyes",
    "eye_points",
    "BlinkDebouncer",
    "BlinkEvent",
    "EyeState",
    "BlinkPattern",
    "PatternAnalysis",
    "PatternAnalyzer",
    "analyze_blink_pattern",
    "BlinkSession",
    "FrameResult",
    "SessionState",
    "FINAL_STATUS_CHEATING",
    "FINAL_STATUS_CLEAN",
]
