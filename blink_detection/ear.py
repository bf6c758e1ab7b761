"""
EAR (Eye Aspect Ratio) extraction.

Two interchangeable estimators, picked by what the frame source provides:
six ordered eye landmarks, or a single detected eye box.
"""

from typing import Any, Sequence

from .geometry import GeometryUtils

# Returned whenever openness cannot be measured
EAR_OPEN = 1.0


class EARCalculator:
    @staticmethod
    def from_landmarks(points: Sequence[Sequence[float]]) -> float:
        """
        EAR = (|p2-p6| + |p3-p5|) / (2 * |p1-p4|)

        p1/p4 are the horizontal eye corners, p2/p6 and p3/p5 the two
        vertical pairs. Only the first six points are used.
        """
        if len(points) < 6:
            return EAR_OPEN

        p1, p2, p3, p4, p5, p6 = points[:6]
        vertical_1 = GeometryUtils.euclidean_distance_2d(p2, p6)
        vertical_2 = GeometryUtils.euclidean_distance_2d(p3, p5)
        horizontal = GeometryUtils.euclidean_distance_2d(p1, p4)

        if horizontal == 0:
            return EAR_OPEN
        return (vertical_1 + vertical_2) / (2.0 * horizontal)

    @staticmethod
    def from_box(box: Any) -> float:
        """Box-ratio fallback: height / width of a detected eye box."""
        width = box.width
        if width == 0:
            return EAR_OPEN
        return box.height / width

    @staticmethod
    def is_eye_closed(ear: float, threshold: float = 0.2) -> bool:
        return ear < threshold

