"""
Detection Decoder
Turns the raw eye-detector output tensor ([4 + classes][boxes]) into a
deduplicated list of pixel-space eye boxes.

Decoding is fail-safe: a malformed tensor or any numeric error produces an
empty list and a log line, never an exception.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import numpy as np

from .config import SessionConfig
from .geometry import GeometryUtils

logger = logging.getLogger("spybridge.core.decoder")


@dataclass(frozen=True)
class Detection:
    """Single eye box, integer pixels, clamped to the image"""
    x_min: int
    y_min: int
    width: int
    height: int
    confidence: float
    class_id: int

    @property
    def x_max(self) -> int:
        return self.x_min + self.width

    @property
    def y_max(self) -> int:
        return self.y_min + self.height

    @property
    def rect(self) -> Tuple[int, int, int, int]:
        return (self.x_min, self.y_min, self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bbox": [self.x_min, self.y_min, self.x_max, self.y_max],
            "width": self.width,
            "height": self.height,
            "confidence": round(self.confidence, 4),
            "class_id": self.class_id,
        }


def non_max_suppression(detections: Iterable[Detection], iou_threshold: float) -> List[Detection]:
    """
    Greedy NMS. Boxes are visited by descending confidence (scan order breaks
    ties); every later box overlapping a kept box by more than
    ``iou_threshold`` is dropped.
    """
    ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
    suppressed = [False] * len(ordered)
    selected: List[Detection] = []

    for i, candidate in enumerate(ordered):
        if suppressed[i]:
            continue
        selected.append(candidate)
        for j in range(i + 1, len(ordered)):
            if suppressed[j]:
                continue
            if GeometryUtils.iou(candidate.rect, ordered[j].rect) > iou_threshold:
                suppressed[j] = True

    return selected


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def decode(
    tensor: Any,
    image_width: int,
    image_height: int,
    confidence_threshold: float,
    iou_threshold: float,
    eye_classes: Sequence[int],
    num_boxes: int = SessionConfig.NUM_BOXES,
    num_classes: int = SessionConfig.NUM_CLASSES,
) -> List[Detection]:
    """Decode one frame's raw output. Returns [] on any failure."""
    try:
        output = np.asarray(tensor, dtype=np.float64)
        if output.ndim == 3 and output.shape[0] == 1:
            output = output[0]

        expected = (4 + num_classes, num_boxes)
        if output.shape != expected:
            raise ValueError(f"tensor shape {output.shape} does not match {expected}")
        if image_width <= 0 or image_height <= 0:
            raise ValueError(f"invalid image size {image_width}x{image_height}")

        scores = output[4:]
        # argmax keeps the first class on ties, same as a strict '>' scan
        class_ids = np.argmax(scores, axis=0)
        max_confidence = scores[class_ids, np.arange(num_boxes)]
        keep = (max_confidence > confidence_threshold) & np.isin(class_ids, list(eye_classes))

        candidates: List[Detection] = []
        for i in np.flatnonzero(keep):
            cx, cy, w, h = output[0:4, i]
            if not np.all(np.isfinite((cx, cy, w, h))):
                continue

            x_min = _clamp(int((cx - w / 2) * image_width), 0, image_width)
            y_min = _clamp(int((cy - h / 2) * image_height), 0, image_height)
            x_max = _clamp(int((cx + w / 2) * image_width), 0, image_width)
            y_max = _clamp(int((cy + h / 2) * image_height), 0, image_height)
            if x_max - x_min <= 0 or y_max - y_min <= 0:
                continue

            candidates.append(Detection(
                x_min=x_min,
                y_min=y_min,
                width=x_max - x_min,
                height=y_max - y_min,
                confidence=float(max_confidence[i]),
                class_id=int(class_ids[i]),
            ))

        return non_max_suppression(candidates, iou_threshold)
    except Exception as e:
        logger.warning(f"Decoding failed, no detections this frame: {e}")
        return []


class DetectionDecoder:
    """Decoder bound to one session's layout and thresholds"""

    def __init__(self, config: SessionConfig):
        self.config = config

    def decode(self, tensor: Any, image_width: int, image_height: int) -> List[Detection]:
        return decode(
            tensor,
            image_width,
            image_height,
            confidence_threshold=self.config.CONFIDENCE_THRESHOLD,
            iou_threshold=self.config.IOU_THRESHOLD,
            eye_classes=self.config.EYE_CLASSES,
            num_boxes=self.config.NUM_BOXES,
            num_classes=self.config.NUM_CLASSES,
        )
