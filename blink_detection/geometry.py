"""
Geometry primitives shared by the detection decoder and the EAR extractor.
Rectangles are integer pixel boxes given as (x_min, y_min, width, height).
"""

import math
from typing import Sequence, Tuple

Point2D = Tuple[float, float]
Rect = Tuple[int, int, int, int]


class GeometryUtils:
    @staticmethod
    def euclidean_distance_2d(p1: Sequence[float], p2: Sequence[float]) -> float:
        return math.sqrt((p1[0] - p2[0]) ** 2 + (p1[1] - p2[1]) ** 2)

    @staticmethod
    def intersection_area(box1: Rect, box2: Rect) -> int:
        x1, y1, w1, h1 = box1
        x2, y2, w2, h2 = box2
        x_overlap = max(0, min(x1 + w1, x2 + w2) - max(x1, x2))
        y_overlap = max(0, min(y1 + h1, y2 + h2) - max(y1, y2))
        return x_overlap * y_overlap

    @staticmethod
    def iou(box1: Rect, box2: Rect) -> float:
        """Intersection over Union; 0.0 when the union is empty."""
        intersection = GeometryUtils.intersection_area(box1, box2)
        union = box1[2] * box1[3] + box2[2] * box2[3] - intersection
        return intersection / union if union > 0 else 0.0
