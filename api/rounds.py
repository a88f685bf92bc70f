"""
Round API Endpoints

重點：
1. 只提供查詢，回合的變更只能透過 WebSocket 事件與計時器
2. 目前回合的狀態直接讀 RoundLifecycle
3. 已結束的回合從封存讀取（process 重啟後不保留）
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

import logging

from config import get_settings
from database import get_db
from schemas import ArchivedRoundResponse, CurrentRoundResponse
from api.dependencies import get_lifecycle
from core.exceptions import RoundNotFound
from core.round_lifecycle import RoundLifecycle
from services.history_service import get_archived_round, list_recent_rounds

router = APIRouter(prefix="/api/rounds", tags=["rounds"])
logger = logging.getLogger(__name__)


@router.get("/current", response_model=CurrentRoundResponse)
def get_current_round(lifecycle: RoundLifecycle = Depends(get_lifecycle)):
    """
    取得目前回合資訊

    返回：
        - state: 生命週期狀態（IDLE/CREATING/ACTIVE/RESOLVING/COOLDOWN）
        - round_id / time_remaining / participants / bets：只有 ACTIVE 時才有
    """
    try:
        return CurrentRoundResponse(**lifecycle.current_view())
    except Exception as e:
        logger.error(f"Failed to get current round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/history", response_model=List[ArchivedRoundResponse])
def get_round_history(
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """
    取得最近結束的回合（新到舊）

    參數：
        limit: 筆數，預設為 settings.history_limit
    """
    try:
        return list_recent_rounds(db, limit or get_settings().history_limit)
    except Exception as e:
        logger.error(f"Failed to list round history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{round_id}", response_model=ArchivedRoundResponse)
def get_round(round_id: str, db: Session = Depends(get_db)):
    """
    取得單一已結束回合的結果

    返回：
        勝出彩池、贏家、所有下注、參與者
    """
    try:
        return get_archived_round(db, round_id).to_dict()
    except RoundNotFound:
        raise HTTPException(status_code=404, detail="Round not found")
    except Exception as e:
        logger.error(f"Failed to get round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
