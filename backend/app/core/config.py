"""
SpyBridge Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List, Optional

from blink_detection.config import SessionConfig


class Settings(BaseSettings):
    # App
    APP_NAME: str = "SpyBridge"
    SPYBRIDGE_ENV: str = "development"
    DEBUG: bool = True

    # Eye detector (YOLO, 4 classes: open/closed eyes + two face classes)
    EYE_MODEL_WEIGHTS_PATH: str = "../weights/eye_detector.pt"
    # "detector" feeds decoded eye boxes, "landmarks" feeds MediaPipe eye points
    EAR_SOURCE: str = "detector"

    # Session thresholds
    CONFIDENCE_THRESHOLD: float = 0.45
    IOU_THRESHOLD: float = 0.5
    EAR_THRESHOLD: float = 0.2
    CONSECUTIVE_FRAMES: int = 3
    RESET_FRAMES: int = 90
    WINDOW_HORIZON_MS: int = 60000
    AUTO_STOP_DELAY_S: float = 5.0
    SIMULATE_WHEN_UNAVAILABLE: bool = True
    SIM_SEED: Optional[int] = None

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8000"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    @property
    def weights_path(self) -> Path:
        p = Path(self.EYE_MODEL_WEIGHTS_PATH)
        if not p.is_absolute():
            p = self.base_dir / p
        return p

    def session_config(self) -> SessionConfig:
        return SessionConfig(
            CONFIDENCE_THRESHOLD=self.CONFIDENCE_THRESHOLD,
            IOU_THRESHOLD=self.IOU_THRESHOLD,
            EAR_THRESHOLD=self.EAR_THRESHOLD,
            CONSECUTIVE_FRAMES=self.CONSECUTIVE_FRAMES,
            RESET_FRAMES=self.RESET_FRAMES,
            WINDOW_HORIZON_MS=self.WINDOW_HORIZON_MS,
            AUTO_STOP_DELAY_S=self.AUTO_STOP_DELAY_S,
            SIMULATE_WHEN_UNAVAILABLE=self.SIMULATE_WHEN_UNAVAILABLE,
            SIM_SEED=self.SIM_SEED,
        )

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        extra = "allow"


settings = Settings()
