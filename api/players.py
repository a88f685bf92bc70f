"""
Player API Endpoints

職責：
1. 查詢目前在線的玩家
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
import logging

from schemas import PlayerResponse
from api.dependencies import get_lifecycle
from core.round_lifecycle import RoundLifecycle

router = APIRouter(prefix="/api/players", tags=["players"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[PlayerResponse])
def list_players(lifecycle: RoundLifecycle = Depends(get_lifecycle)):
    """
    取得目前在線的玩家

    返回：
        [{player_id, name, profile}]（不包含 connection_id）
    """
    try:
        return [PlayerResponse(**player) for player in lifecycle.registry.snapshot()]
    except Exception as e:
        logger.error(f"Failed to list players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
