"""
WebSocket Endpoint

職責：
1. 接受連線，為每條連線產生 connection_id
2. 將 join / bet 事件轉交給 RoundLifecycle
3. 將業務異常轉成只回覆給發送者的 error 事件
4. 連線中斷時通知 RoundLifecycle

Frame 格式：{"event": <name>, "data": {...}}
"""
import json
import logging
import uuid
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from schemas import JoinRequest
from core.broadcast import BroadcastGateway, ConnectionHub
from core.exceptions import InvalidBet, NoActiveRound
from core.round_lifecycle import RoundLifecycle

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


async def reply_error(gateway: BroadcastGateway, connection_id: str, message: str) -> None:
    await gateway.reply_to(connection_id, "error", {"message": message})


async def dispatch_event(
    lifecycle: RoundLifecycle,
    connection_id: str,
    frame: Any,
) -> None:
    """
    處理一個 inbound frame

    異常處理：
    - 格式錯誤、未知事件、不合法下注、沒有回合 -> error（只回覆給發送者）
    - 其他異常 -> 記錄 log，回覆 "Internal error"，連線繼續
    """
    gateway = lifecycle.gateway

    if not isinstance(frame, dict) or not isinstance(frame.get("data", {}), dict):
        await reply_error(gateway, connection_id, "Invalid message format.")
        return

    event = frame.get("event")
    data: Dict[str, Any] = frame.get("data") or {}

    try:
        if event == "join":
            request = JoinRequest(**data)
            await lifecycle.join(
                connection_id,
                request.player_id,
                name=request.name,
                profile=request.profile,
            )

        elif event == "bet":
            await lifecycle.place_bet(
                data.get("player_id"),
                data.get("amount"),
                data.get("pot"),
                asset=data.get("asset"),
            )

        else:
            await reply_error(gateway, connection_id, f"Unknown event: {event}")

    except ValidationError:
        await reply_error(gateway, connection_id, "Invalid join payload.")
    except (NoActiveRound, InvalidBet) as e:
        await reply_error(gateway, connection_id, str(e))
    except Exception as e:
        logger.error(f"Failed to handle {event} from {connection_id}: {e}", exc_info=True)
        await reply_error(gateway, connection_id, "Internal error")


@router.websocket("/ws")
async def game_socket(websocket: WebSocket):
    lifecycle: RoundLifecycle = websocket.app.state.lifecycle
    hub: ConnectionHub = websocket.app.state.hub
    connection_id = uuid.uuid4().hex

    await websocket.accept()
    hub.add(connection_id, websocket)
    logger.info(f"Client connected: {connection_id}")

    try:
        while True:
            raw_text = await websocket.receive_text()
            try:
                frame = json.loads(raw_text)
            except json.JSONDecodeError:
                await reply_error(hub, connection_id, "Invalid JSON payload.")
                continue
            await dispatch_event(lifecycle, connection_id, frame)

    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception(f"WebSocket error for connection {connection_id}")
    finally:
        hub.discard(connection_id)
        logger.info(f"Client disconnected: {connection_id}")
        await lifecycle.disconnect(connection_id)
