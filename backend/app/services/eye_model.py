"""
SpyBridge Eye Model Runner
Runs the YOLO eye detector and hands back its raw output tensor
([4 + classes][boxes], box rows normalised to 0..1) for the blink session
to decode.

Performance notes:
- GPU (CUDA) inference with FP16 half-precision when available
- ultralytics/torch are imported lazily so a missing install or missing
  weights leave the backend running in simulation mode
"""

import logging
from pathlib import Path
from typing import Any, Optional

import cv2
import numpy as np

from app.core.config import settings

logger = logging.getLogger("spybridge.model")


class EyeModelRunner:
    """Callable ``frame -> raw tensor`` around the YOLO eye detector"""

    def __init__(self, weights: Optional[Path] = None, input_size: int = 640):
        self.weights = Path(weights) if weights is not None else settings.weights_path
        self.input_size = input_size
        self._net = None
        self._torch = None
        self._device = "cpu"
        self._use_half = False
        self._load_model()

    @property
    def is_available(self) -> bool:
        return self._net is not None

    def _load_model(self):
        """
        Lazy-load ultralytics + torch so that import-time errors don't
        crash the rest of the backend.
        """
        if not self.weights.exists():
            logger.warning(f"Eye model weights not found at {self.weights}")
            return
        try:
            import torch
            from ultralytics import YOLO

            self._torch = torch
            if torch.cuda.is_available():
                self._device = "cuda"
                self._use_half = True
                logger.info(f"GPU detected: {torch.cuda.get_device_name(0)} (FP16)")
            else:
                logger.info("No GPU detected, running eye model on CPU")

            logger.info(f"Loading eye model from: {self.weights}")
            yolo = YOLO(str(self.weights))
            net = yolo.model.to(self._device).eval()
            self._net = net.half() if self._use_half else net
        except Exception as e:
            logger.error(f"Failed to load eye model: {e}")
            self._net = None

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """BGR frame -> 1 x 3 x S x S float32 in 0..1 (plain resize, no letterbox)"""
        resized = cv2.resize(frame, (self.input_size, self.input_size), interpolation=cv2.INTER_LINEAR)
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
        chw = np.transpose(rgb, (2, 0, 1)).astype(np.float32) / 255.0
        return np.ascontiguousarray(chw[np.newaxis])

    def __call__(self, frame: np.ndarray) -> Any:
        if not self.is_available:
            raise RuntimeError("eye model is not loaded")

        torch = self._torch
        batch = torch.from_numpy(self.preprocess(frame)).to(self._device)
        if self._use_half:
            batch = batch.half()

        with torch.no_grad():
            output = self._net(batch)
        if isinstance(output, (list, tuple)):
            output = output[0]

        raw = output.float().cpu().numpy()
        # Box rows come back in input pixels; the decoder wants 0..1
        raw[:, :4, :] /= float(self.input_size)
        return raw
