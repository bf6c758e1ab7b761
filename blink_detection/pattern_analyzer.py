"""
Pattern Analyzer
Keeps a trailing window of blink events and classifies the window into a
behavioural category from interval statistics.

Categories overlap by their raw conditions (a window can be both rapid and
rhythmic), so the checks run in a fixed order and the first match wins:

    coded -> rapid -> rhythmic -> very infrequent -> erratic -> normal
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Sequence, Tuple

import numpy as np

from .blink_debouncer import BlinkEvent
from .config import SessionConfig

logger = logging.getLogger("spybridge.core.pattern")


class BlinkPattern(str, Enum):
    NO_BLINKS = "No blinks detected"
    INSUFFICIENT_DATA = "Insufficient data"
    CODED = "Coded blinking"
    RAPID = "Rapid blinking"
    RHYTHMIC = "Rhythmic blinking"
    VERY_INFREQUENT = "Very infrequent blinking"
    ERRATIC = "Erratic blinking"
    NORMAL = "Normal"

    @property
    def label(self) -> str:
        return self.value

    @property
    def suspicious(self) -> bool:
        return self in SUSPICIOUS_PATTERNS


# Erratic blinking is common in normal behaviour and is not flagged
SUSPICIOUS_PATTERNS = frozenset({
    BlinkPattern.CODED,
    BlinkPattern.RAPID,
    BlinkPattern.RHYTHMIC,
    BlinkPattern.VERY_INFREQUENT,
})


@dataclass(frozen=True)
class PatternAnalysis:
    """Classification of one event window plus the numbers behind it"""
    classification: BlinkPattern
    count: int = 0
    time_span_ms: float = 0.0
    blink_rate: float = 0.0
    mean_interval_ms: float = 0.0
    std_interval_ms: float = 0.0
    cv: float = 0.0
    intervals: Tuple[int, ...] = field(default_factory=tuple)
    quick_succession_count: int = 0
    repeating_motif: bool = False

    @property
    def suspicious(self) -> bool:
        return self.classification.suspicious

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.classification.label,
            "classification": self.classification.name,
            "suspicious": self.suspicious,
            "count": self.count,
            "time_span_ms": self.time_span_ms,
            "rate": round(self.blink_rate, 2),
            "avg_interval": round(self.mean_interval_ms, 1),
            "std_dev_interval": round(self.std_interval_ms, 1),
            "cv": round(self.cv, 4),
            "quick_succession_count": self.quick_succession_count,
            "repeating_motif": self.repeating_motif,
        }


def interval_statistics(intervals: Sequence[float]) -> Tuple[float, float, float]:
    """(mean, population std dev, coefficient of variation); zeros when empty."""
    if not intervals:
        return 0.0, 0.0, 0.0
    values = np.asarray(intervals, dtype=np.float64)
    mean = float(values.mean())
    std = float(values.std())
    cv = std / mean if mean > 0 else 0.0
    return mean, std, cv


def has_burst(intervals: Sequence[float], burst_window_ms: float) -> bool:
    """Three blinks inside the burst window: two consecutive intervals summing below it."""
    return any(
        intervals[i] + intervals[i + 1] < burst_window_ms
        for i in range(len(intervals) - 1)
    )


def detect_repeating_motif(intervals: Sequence[float], tolerance_ms: float = 50) -> bool:
    """True when some pair of successive intervals reappears later in the window."""
    if len(intervals) < 3:
        return False
    for i in range(len(intervals) - 2):
        for j in range(i + 1, len(intervals) - 1):
            if (abs(intervals[i] - intervals[j]) < tolerance_ms
                    and abs(intervals[i + 1] - intervals[j + 1]) < tolerance_ms):
                return True
    return False


def _classify(count: int, time_span_ms: float, blink_rate: float, intervals: List[int],
              cv: float, config: SessionConfig) -> BlinkPattern:
    if count == 0:
        return BlinkPattern.NO_BLINKS
    if count < config.MIN_EVENTS:
        return BlinkPattern.INSUFFICIENT_DATA
    if has_burst(intervals, config.BURST_WINDOW_MS):
        return BlinkPattern.CODED
    if blink_rate > config.RAPID_RATE_PER_MIN:
        return BlinkPattern.RAPID
    if len(intervals) >= config.RHYTHMIC_MIN_INTERVALS and cv < config.RHYTHMIC_CV_THRESHOLD:
        return BlinkPattern.RHYTHMIC
    if blink_rate < config.INFREQUENT_RATE_PER_MIN and time_span_ms > config.INFREQUENT_SPAN_MS:
        return BlinkPattern.VERY_INFREQUENT
    if cv > config.ERRATIC_CV_THRESHOLD:
        return BlinkPattern.ERRATIC
    return BlinkPattern.NORMAL


def analyze_blink_pattern(events: Sequence[BlinkEvent], config: SessionConfig) -> PatternAnalysis:
    """Classify a time-ordered window of blink events."""
    count = len(events)
    if count == 0:
        return PatternAnalysis(classification=BlinkPattern.NO_BLINKS)

    time_span_ms = float(events[-1].timestamp_ms - events[0].timestamp_ms)
    blink_rate = count / (time_span_ms / 60000.0) if time_span_ms > 0 else 0.0

    intervals = [
        events[i].timestamp_ms - events[i - 1].timestamp_ms
        for i in range(1, count)
    ]
    mean, std, cv = interval_statistics(intervals)

    return PatternAnalysis(
        classification=_classify(count, time_span_ms, blink_rate, intervals, cv, config),
        count=count,
        time_span_ms=time_span_ms,
        blink_rate=blink_rate,
        mean_interval_ms=mean,
        std_interval_ms=std,
        cv=cv,
        intervals=tuple(intervals),
        quick_succession_count=sum(1 for i in intervals if i < config.QUICK_SUCCESSION_MS),
        repeating_motif=detect_repeating_motif(intervals, config.MOTIF_TOLERANCE_MS),
    )


class PatternAnalyzer:
    """Trailing event window; re-classified on every new event"""

    def __init__(self, config: SessionConfig):
        self.config = config
        self.events: Deque[BlinkEvent] = deque()
        self.last_analysis = PatternAnalysis(classification=BlinkPattern.NO_BLINKS)

    def reset(self):
        self.events.clear()
        self.last_analysis = PatternAnalysis(classification=BlinkPattern.NO_BLINKS)

    def add_event(self, event: BlinkEvent) -> PatternAnalysis:
        if self.events and event.timestamp_ms < self.events[-1].timestamp_ms:
            raise ValueError(
                f"blink event at {event.timestamp_ms}ms is older than "
                f"the last one at {self.events[-1].timestamp_ms}ms"
            )

        self.events.append(event)
        horizon_start = event.timestamp_ms - self.config.WINDOW_HORIZON_MS
        while self.events and self.events[0].timestamp_ms < horizon_start:
            self.events.popleft()

        analysis = analyze_blink_pattern(list(self.events), self.config)
        if analysis.classification is not self.last_analysis.classification:
            logger.info("Blink pattern: %s (count=%d, rate=%.1f/min, cv=%.2f)",
                        analysis.classification.label, analysis.count,
                        analysis.blink_rate, analysis.cv)
        self.last_analysis = analysis
        return analysis
