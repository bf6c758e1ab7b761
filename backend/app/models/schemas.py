"""
Pydantic Schemas for API request/response validation
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


# ── Frame input Schemas ──────────────────────────────────
class TensorFrame(BaseModel):
    """Raw detector output, [4 + num_classes][num_boxes] (batch dim optional)"""
    tensor: List[Any]
    image_width: int = Field(gt=0)
    image_height: int = Field(gt=0)


class LandmarksFrame(BaseModel):
    """Each eye is six (x, y) points: p1 corner, p2/p3 top, p4 corner, p5/p6 bottom"""
    eyes: List[List[List[float]]] = Field(min_length=1)


# ── Result Schemas ───────────────────────────────────────
class DetectionResult(BaseModel):
    bbox: List[int]
    width: int
    height: int
    confidence: float
    class_id: int


class FrameResultResponse(BaseModel):
    detections: List[DetectionResult]
    ear_value: float
    blink_count: int
    suspicious: bool
    classification: str
    pattern: str
    eyes_detected: bool
    blink_detected: bool
    simulated: bool
    timestamp_ms: int


class PatternSummary(BaseModel):
    pattern: str
    classification: str
    suspicious: bool
    count: int
    time_span_ms: float
    rate: float
    avg_interval: float
    std_dev_interval: float
    cv: float
    quick_succession_count: int
    repeating_motif: bool


class SessionStatus(BaseModel):
    active: bool
    simulation_mode: bool
    blink_count: int
    ear_value: float
    eye_state: str
    suspicious: bool
    classification: str
    final_status: str
    frames_processed: int
    frames_dropped: int
    last_blink_ms: Optional[int] = None
    events_in_window: int
    auto_stop_pending: bool
    analysis: PatternSummary
    ear_source: Optional[str] = None


class StopResponse(BaseModel):
    final_status: str
    status: SessionStatus


class ServiceInfo(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_available: bool
    landmarks_available: bool
    simulation_mode: bool
    ear_source: str
    config: Dict[str, Dict[str, Any]]
