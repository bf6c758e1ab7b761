"""
WebSocket Router
Real-time blink session feed and alert streaming.
"""

import base64
import json
import logging

import cv2
import numpy as np
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.blink_service import eyes_from_payload, get_blink_service
from app.services.websocket_manager import ws_manager

logger = logging.getLogger("spybridge.ws")

router = APIRouter(tags=["WebSocket"])


def _decode_jpeg(frame_b64: str):
    """Base64 JPEG -> BGR numpy array, or None"""
    try:
        img_bytes = base64.b64decode(frame_b64)
        nparr = np.frombuffer(img_bytes, np.uint8)
        return cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except Exception as e:
        logger.debug(f"Undecodable frame skipped: {e}")
        return None


@router.websocket("/ws/session")
async def websocket_session(websocket: WebSocket):
    """
    Real-time blink session WebSocket.

    Protocol:
    - Control: {"type": "start" | "stop" | "reset" | "ping"}
    - Frames:
      {"type": "frame", "data": "<base64 jpeg>"}
      {"type": "tensor", "tensor": [[...]], "image_width": W, "image_height": H}
      {"type": "landmarks", "eyes": [[[x, y] * 6], ...]}
    - Server responds with:
      {"type": "result", "data": {...frame result...}}
      {"type": "stopped", "final_status": "..."}
      {"type": "info", "data": {...status...}}
      {"type": "pong"} / {"type": "error", "message": "..."}

    Malformed messages are skipped.
    """
    await ws_manager.connect(websocket, "session")
    service = get_blink_service()
    frame_count = 0

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            msg_type = msg.get("type", "")

            # ── Control messages ──
            if msg_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if msg_type == "start":
                status = await service.start()
                await websocket.send_json({"type": "info", "data": status})
                continue

            if msg_type == "stop":
                final_status = await service.stop()
                await websocket.send_json({"type": "stopped", "final_status": final_status})
                continue

            if msg_type == "reset":
                status = await service.reset()
                await websocket.send_json({"type": "info", "data": status})
                continue

            # ── Frame processing ──
            if msg_type == "frame":
                frame = _decode_jpeg(msg.get("data", ""))
                if frame is None:
                    continue
                result = await service.process_frame(frame)

            elif msg_type == "tensor":
                try:
                    width = int(msg["image_width"])
                    height = int(msg["image_height"])
                    tensor = msg["tensor"]
                except (KeyError, TypeError, ValueError):
                    await websocket.send_json({"type": "error", "message": "tensor message needs tensor, image_width, image_height"})
                    continue
                result = await service.process_tensor(tensor, width, height)

            elif msg_type == "landmarks":
                try:
                    eyes = eyes_from_payload(msg.get("eyes") or [])
                except (TypeError, ValueError, IndexError):
                    await websocket.send_json({"type": "error", "message": "landmarks must be lists of [x, y] points"})
                    continue
                result = await service.process_landmarks(eyes)

            else:
                continue

            frame_count += 1
            await websocket.send_json({
                "type": "result",
                "data": result,
                "frame_number": frame_count,
            })

    except WebSocketDisconnect:
        logger.info("Session client disconnected (frames=%d)", frame_count)
    except Exception as e:
        logger.error("Session WS error: %s", e, exc_info=True)
    finally:
        ws_manager.disconnect(websocket, "session")


@router.websocket("/ws/alerts")
async def websocket_alerts(websocket: WebSocket):
    """WebSocket endpoint for real-time alert streaming"""
    await ws_manager.connect(websocket, "alerts")
    try:
        while True:
            # Keep connection alive, alerts are pushed via broadcast
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_manager.disconnect(websocket, "alerts")
