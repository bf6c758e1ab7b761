"""
SpyBridge Structured Logger
"""

import logging
import sys


def setup_logging(level: str = "INFO"):
    """Configure the ``spybridge`` logger tree (core + backend) once"""
    logger = logging.getLogger("spybridge")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Suppress noisy loggers
    for name in ("ultralytics", "urllib3", "absl", "multipart"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
