"""
SpyBridge Landmark Service
MediaPipe FaceMesh front-end for the landmark EAR path: frame in, the six
ordered points of each eye out.
"""

import logging
import os
import urllib.request
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from blink_detection.landmarks import both_eyes

logger = logging.getLogger("spybridge.landmarks")

Points = List[Tuple[float, float]]

_MODELS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), ".models")
_FACE_MODEL_PATH = os.path.join(_MODELS_DIR, "face_landmarker.task")
_FACE_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "face_landmarker/face_landmarker/float16/latest/face_landmarker.task"
)


class _LandmarkListWrapper:
    """Wraps new-API landmark list to provide old-API .landmark[idx] access."""
    __slots__ = ("landmark",)

    def __init__(self, landmarks):
        self.landmark = landmarks


class LandmarkService:
    """
    Works with both MediaPipe APIs: ``mp.solutions.face_mesh`` where it still
    exists, the ``mp.tasks`` FaceLandmarker otherwise (mediapipe >= 0.10.30).
    """

    def __init__(self):
        self._mp = None
        self._face_mesh = None
        self._face_landmarker = None
        self._initialise()

    @property
    def is_available(self) -> bool:
        return self._face_mesh is not None or self._face_landmarker is not None

    def _initialise(self):
        try:
            import mediapipe as mp
            self._mp = mp
            if hasattr(mp, "solutions"):
                self._face_mesh = mp.solutions.face_mesh.FaceMesh(
                    static_image_mode=False,
                    max_num_faces=1,
                    refine_landmarks=True,
                    min_detection_confidence=0.5,
                    min_tracking_confidence=0.5,
                )
            else:
                self._ensure_model_downloaded()
                options = mp.tasks.vision.FaceLandmarkerOptions(
                    base_options=mp.tasks.BaseOptions(model_asset_path=_FACE_MODEL_PATH),
                    running_mode=mp.tasks.vision.RunningMode.IMAGE,
                    num_faces=1,
                )
                self._face_landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
            logger.info("Landmark source initialised (MediaPipe FaceMesh)")
        except Exception as e:
            logger.error(f"Failed to initialise landmark source: {e}")
            self._face_mesh = None
            self._face_landmarker = None

    @staticmethod
    def _ensure_model_downloaded():
        os.makedirs(_MODELS_DIR, exist_ok=True)
        if not os.path.exists(_FACE_MODEL_PATH):
            logger.info("Downloading face_landmarker.task ...")
            urllib.request.urlretrieve(_FACE_MODEL_URL, _FACE_MODEL_PATH)

    def _first_face(self, frame_rgb: np.ndarray):
        if self._face_landmarker is not None:
            image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB,
                                   data=np.ascontiguousarray(frame_rgb))
            result = self._face_landmarker.detect(image)
            if not result.face_landmarks:
                return None
            return _LandmarkListWrapper(result.face_landmarks[0])

        results = self._face_mesh.process(frame_rgb)
        if not results.multi_face_landmarks:
            return None
        return results.multi_face_landmarks[0]

    def eyes(self, frame: np.ndarray) -> Sequence[Points]:
        """Left and right eye points in pixels; empty when no face is found."""
        if not self.is_available:
            return []
        frame_height, frame_width = frame.shape[:2]
        face = self._first_face(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if face is None:
            return []
        return list(both_eyes(face, frame_width, frame_height))

    def cleanup(self):
        for obj in (self._face_mesh, self._face_landmarker):
            if obj is not None and hasattr(obj, "close"):
                try:
                    obj.close()
                except Exception as e:
                    logger.debug(f"Landmark source close failed: {e}")
        self._face_mesh = None
        self._face_landmarker = None


_landmark_service: Optional[LandmarkService] = None


def get_landmark_service() -> LandmarkService:
    global _landmark_service
    if _landmark_service is None:
        _landmark_service = LandmarkService()
    return _landmark_service
