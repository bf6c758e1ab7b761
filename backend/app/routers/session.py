"""
Session Router
Start/stop/reset the blink session and feed it frames over REST.
"""

import logging
from fastapi import APIRouter

from app.models.schemas import (
    FrameResultResponse,
    LandmarksFrame,
    ServiceInfo,
    SessionStatus,
    StopResponse,
    TensorFrame,
)
from app.services.blink_service import eyes_from_payload, get_blink_service

logger = logging.getLogger("spybridge.session_router")

router = APIRouter(prefix="/api/session", tags=["Session"])


@router.post("/start", response_model=SessionStatus)
async def start_session():
    service = get_blink_service()
    status = await service.start()
    logger.info(f"Session started via REST (simulation={status['simulation_mode']})")
    return status


@router.post("/stop", response_model=StopResponse)
async def stop_session():
    service = get_blink_service()
    final_status = await service.stop()
    return {"final_status": final_status, "status": service.status()}


@router.post("/reset", response_model=SessionStatus)
async def reset_session():
    return await get_blink_service().reset()


@router.get("/status", response_model=SessionStatus)
def session_status():
    return get_blink_service().status()


@router.get("/info", response_model=ServiceInfo)
def session_info():
    return get_blink_service().info()


@router.post("/tensor", response_model=FrameResultResponse)
async def post_tensor(frame: TensorFrame):
    """Feed one raw detector output. Returns the prior snapshot while inactive."""
    service = get_blink_service()
    return await service.process_tensor(frame.tensor, frame.image_width, frame.image_height)


@router.post("/landmarks", response_model=FrameResultResponse)
async def post_landmarks(frame: LandmarksFrame):
    service = get_blink_service()
    return await service.process_landmarks(eyes_from_payload(frame.eyes))
