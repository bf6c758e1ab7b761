"""
MediaPipe FaceMesh eye landmarks, ordered for the six-point EAR formula.

Works on any landmark list exposing ``.landmark[idx].x / .y`` in normalised
image coordinates, so mediapipe itself is not imported here.
"""

from typing import List, Sequence, Tuple

Points = List[Tuple[float, float]]


class FaceLandmarks:
    """FaceMesh indices in p1..p6 order: corner, top x2, corner, bottom x2"""

    LEFT_EYE = (33, 160, 158, 133, 153, 144)
    RIGHT_EYE = (362, 385, 387, 263, 373, 380)


def eye_points(face_landmarks, indices: Sequence[int],
               frame_width: int, frame_height: int) -> Points:
    """Pixel-space points for one eye. Missing indices give a short list."""
    landmarks = face_landmarks.landmark
    points = []
    for idx in indices:
        if idx >= len(landmarks):
            break
        point = landmarks[idx]
        points.append((point.x * frame_width, point.y * frame_height))
    return points


def both_eyes(face_landmarks, frame_width: int, frame_height: int) -> Tuple[Points, Points]:
    """(left, right) eye points for one detected face."""
    return (
        eye_points(face_landmarks, FaceLandmarks.LEFT_EYE, frame_width, frame_height),
        eye_points(face_landmarks, FaceLandmarks.RIGHT_EYE, frame_width, frame_height),
    )
