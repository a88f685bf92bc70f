"""Best-effort delivery of lifecycle events to WebSocket clients."""

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def build_frame(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"event": event, "data": payload}


class BroadcastGateway(Protocol):
    """One-way notification interface consumed by the round lifecycle.

    Neither method acknowledges delivery. Implementations must not raise on
    delivery failure and must return within a bounded time.
    """

    async def broadcast_all(self, event: str, payload: Dict[str, Any]) -> None:
        ...

    async def reply_to(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class ConnectionHub:
    """Holds the open WebSocket connections keyed by connection id.

    Every send is bounded by ``send_timeout``. A connection whose send times
    out is dropped from the hub, so one stalled peer costs at most a single
    timeout and never delays delivery to the others.
    """

    DEFAULT_SEND_TIMEOUT = 5.0

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self._connections: Dict[str, WebSocket] = {}
        self._send_timeout = send_timeout

    def add(self, connection_id: str, websocket: WebSocket) -> None:
        self._connections[connection_id] = websocket
        logger.debug(f"Connection {connection_id} registered ({len(self._connections)} open)")

    def discard(self, connection_id: str) -> Optional[WebSocket]:
        return self._connections.pop(connection_id, None)

    async def _send(self, connection_id: str, websocket: WebSocket, frame: Dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(websocket.send_json(frame), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Send of {frame['event']} to {connection_id} timed out after "
                f"{self._send_timeout}s, dropping connection"
            )
            if self._connections.get(connection_id) is websocket:
                del self._connections[connection_id]
        except Exception as e:
            logger.warning(f"Failed to deliver {frame['event']} to {connection_id}: {e}")

    async def broadcast_all(self, event: str, payload: Dict[str, Any]) -> None:
        frame = build_frame(event, payload)
        # Copy to avoid modification during iteration
        targets = list(self._connections.items())
        if targets:
            await asyncio.gather(
                *(self._send(connection_id, websocket, frame) for connection_id, websocket in targets),
                return_exceptions=True,
            )

    async def reply_to(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None:
        websocket = self._connections.get(connection_id)
        if websocket is None:
            logger.debug(f"Dropping {event} for closed connection {connection_id}")
            return
        await self._send(connection_id, websocket, build_frame(event, payload))
