"""
SpyBridge - FastAPI Application Entry Point
Blink-pattern cheating detection service
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO")
logger = logging.getLogger("spybridge.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  SpyBridge Blink Monitor - Starting")
    logger.info("=" * 60)

    # Pre-load the frame source (eye model or landmarks)
    from app.services.blink_service import get_blink_service
    service = get_blink_service()
    service.bind_loop(asyncio.get_running_loop())
    if service.session.simulation_mode:
        logger.warning("Frame source unavailable - sessions will run in SIMULATION mode")
    else:
        logger.info(f"Frame source ready (EAR source: {service.ear_source})")

    logger.info(f"Environment: {settings.SPYBRIDGE_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info("SpyBridge is ready!")
    logger.info("=" * 60)

    yield

    logger.info("SpyBridge shutting down...")
    service.cleanup()


# Create FastAPI app
app = FastAPI(
    title="SpyBridge - Blink Pattern Monitor",
    description="Detects coded and abnormal blinking from an eye detector or face landmarks",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from app.routers import session, websocket

app.include_router(session.router)
app.include_router(websocket.router)


# Health check endpoint
@app.get("/health")
def health_check():
    from app.services.blink_service import get_blink_service
    service = get_blink_service()
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "ear_source": service.ear_source,
        "simulation_mode": service.session.simulation_mode,
        "session_active": service.session.active,
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "SpyBridge API",
        "version": "1.0.0",
        "description": "Blink-pattern cheating detection",
        "endpoints": {
            "session": "/api/session",
            "websocket_session": "/ws/session",
            "websocket_alerts": "/ws/alerts",
            "health": "/health",
        }
    }
