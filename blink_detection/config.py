"""
Session configuration - every threshold used by one blink-monitoring session.
Values are fixed when the session is constructed.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple


# Nested config sections, same layout the detector core has always accepted
_SECTIONS = {
    "detection": (
        "NUM_BOXES", "NUM_CLASSES", "INPUT_SIZE",
        "CONFIDENCE_THRESHOLD", "IOU_THRESHOLD", "EYE_CLASSES",
        "EAR_THRESHOLD", "CONSECUTIVE_FRAMES", "OPEN_FRAMES", "RESET_FRAMES",
        "MIN_EVENTS", "RHYTHMIC_MIN_INTERVALS",
        "RAPID_RATE_PER_MIN", "INFREQUENT_RATE_PER_MIN",
        "RHYTHMIC_CV_THRESHOLD", "ERRATIC_CV_THRESHOLD",
    ),
    "timing": (
        "WINDOW_HORIZON_MS", "BURST_WINDOW_MS", "QUICK_SUCCESSION_MS",
        "INFREQUENT_SPAN_MS", "MOTIF_TOLERANCE_MS", "AUTO_STOP_DELAY_S",
        "SIM_FIRST_DELAY_S", "SIM_MIN_DELAY_S", "SIM_MAX_DELAY_S",
        "SIM_DOUBLE_BLINK_DELAY_S",
    ),
    "general": (
        "SIMULATE_WHEN_UNAVAILABLE",
        "SIM_BLINK_PROBABILITY", "SIM_DOUBLE_BLINK_PROBABILITY", "SIM_SEED",
    ),
}


@dataclass(frozen=True)
class SessionConfig:
    """Immutable configuration for eye decoding, blink debouncing and pattern analysis"""

    # Detector output layout: [4 + NUM_CLASSES][NUM_BOXES]
    NUM_BOXES: int = 8400
    NUM_CLASSES: int = 4
    INPUT_SIZE: int = 640
    CONFIDENCE_THRESHOLD: float = 0.45
    IOU_THRESHOLD: float = 0.5
    EYE_CLASSES: Tuple[int, ...] = (0, 1)

    # Blink debouncing (EAR = Eye Aspect Ratio)
    EAR_THRESHOLD: float = 0.2
    CONSECUTIVE_FRAMES: int = 3
    OPEN_FRAMES: int = 1
    RESET_FRAMES: int = 90

    # Pattern analysis windows (milliseconds)
    WINDOW_HORIZON_MS: int = 60000
    BURST_WINDOW_MS: int = 400
    QUICK_SUCCESSION_MS: int = 1000
    INFREQUENT_SPAN_MS: int = 30000
    MOTIF_TOLERANCE_MS: int = 50

    # Pattern classification
    MIN_EVENTS: int = 3
    RHYTHMIC_MIN_INTERVALS: int = 2
    RAPID_RATE_PER_MIN: float = 50.0
    INFREQUENT_RATE_PER_MIN: float = 5.0
    RHYTHMIC_CV_THRESHOLD: float = 0.2
    ERRATIC_CV_THRESHOLD: float = 1.0

    # Auto-stop after a suspicious classification (0 disables)
    AUTO_STOP_DELAY_S: float = 0.0

    # Simulation mode, used when no detection model is available
    SIMULATE_WHEN_UNAVAILABLE: bool = True
    SIM_FIRST_DELAY_S: float = 2.0
    SIM_MIN_DELAY_S: float = 2.0
    SIM_MAX_DELAY_S: float = 5.0
    SIM_BLINK_PROBABILITY: float = 0.3
    SIM_DOUBLE_BLINK_PROBABILITY: float = 0.1
    SIM_DOUBLE_BLINK_DELAY_S: float = 0.8
    SIM_SEED: Optional[int] = None

    def __post_init__(self):
        if self.NUM_BOXES <= 0 or self.NUM_CLASSES <= 0:
            raise ValueError("NUM_BOXES and NUM_CLASSES must be positive")
        if not 0.0 <= self.IOU_THRESHOLD <= 1.0:
            raise ValueError(f"IOU_THRESHOLD out of range: {self.IOU_THRESHOLD}")
        if self.CONSECUTIVE_FRAMES < 1 or self.OPEN_FRAMES < 1:
            raise ValueError("CONSECUTIVE_FRAMES and OPEN_FRAMES must be >= 1")
        if self.RESET_FRAMES < self.CONSECUTIVE_FRAMES:
            raise ValueError("RESET_FRAMES must be >= CONSECUTIVE_FRAMES")
        if self.WINDOW_HORIZON_MS <= 0:
            raise ValueError("WINDOW_HORIZON_MS must be positive")
        if self.MIN_EVENTS < 2:
            raise ValueError("MIN_EVENTS must be >= 2")
        if self.SIM_MIN_DELAY_S > self.SIM_MAX_DELAY_S:
            raise ValueError("SIM_MIN_DELAY_S must not exceed SIM_MAX_DELAY_S")
        # Lists coming from JSON/YAML are normalised to a hashable tuple
        object.__setattr__(self, "EYE_CLASSES", tuple(int(c) for c in self.EYE_CLASSES))

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]] = None) -> "SessionConfig":
        """
        Build a config from nested ``detection`` / ``timing`` / ``general``
        sections. Unknown keys are ignored, missing keys keep their defaults.
        """
        config = config or {}
        values: Dict[str, Any] = {}
        for section, names in _SECTIONS.items():
            section_values = config.get(section, {}) or {}
            for name in names:
                if name in section_values:
                    values[name] = section_values[name]
        return cls(**values)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        known = {f.name for f in fields(self)}
        return {
            section: {name: getattr(self, name) for name in names if name in known}
            for section, names in _SECTIONS.items()
        }
