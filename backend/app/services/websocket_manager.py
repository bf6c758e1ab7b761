"""
SpyBridge WebSocket Manager
Handles real-time streaming of session results and alerts.
"""

import logging
from typing import Dict, Set
from fastapi import WebSocket

logger = logging.getLogger("spybridge.websocket")


class ConnectionManager:
    """Manages WebSocket connections for real-time streaming"""

    def __init__(self):
        # Channel-based connections
        self.active_connections: Dict[str, Set[WebSocket]] = {
            "session": set(),
            "alerts": set(),
        }

    async def connect(self, websocket: WebSocket, channel: str = "session"):
        await websocket.accept()
        if channel not in self.active_connections:
            self.active_connections[channel] = set()
        self.active_connections[channel].add(websocket)
        logger.info(f"Client connected to channel: {channel} (total: {len(self.active_connections[channel])})")

    def disconnect(self, websocket: WebSocket, channel: str = "session"):
        if channel in self.active_connections:
            self.active_connections[channel].discard(websocket)
        logger.info(f"Client disconnected from channel: {channel}")

    async def broadcast_to_channel(self, channel: str, message: dict):
        """Send message to all clients on a channel"""
        if channel not in self.active_connections:
            return

        dead = set()
        for ws in list(self.active_connections[channel]):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping dead connection on {channel}: {e}")
                dead.add(ws)

        for ws in dead:
            self.active_connections[channel].discard(ws)

    async def send_alert(self, alert: dict):
        """Broadcast alert to alert channel"""
        await self.broadcast_to_channel("alerts", {
            "type": "alert",
            "data": alert
        })

    async def send_session_stopped(self, final_status: str):
        """Tell session clients the session ended without their asking"""
        await self.broadcast_to_channel("session", {
            "type": "stopped",
            "final_status": final_status,
        })

    @property
    def total_connections(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())


# Global instance
ws_manager = ConnectionManager()
