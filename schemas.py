"""
Pydantic schemas：WebSocket 事件 payload 與 HTTP response
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from models import LifecycleState


# ============ Inbound WebSocket events ============

def _stringify_player_id(value):
    # player id 可以是字串或整數，一律以字串作為 key
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class JoinRequest(BaseModel):
    player_id: str = Field(..., min_length=1)
    name: Optional[str] = None
    profile: Optional[str] = None

    normalize_player_id = field_validator("player_id", mode="before")(_stringify_player_id)


class BetRequest(BaseModel):
    player_id: str = Field(..., min_length=1)
    # 數字字串（例如 "500"）會被轉成 float；非數字、<= 0、NaN、inf 都會被拒絕
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    pot: str
    asset: Optional[str] = None

    normalize_player_id = field_validator("player_id", mode="before")(_stringify_player_id)

    @field_validator("amount", mode="before")
    @classmethod
    def _reject_bool_amount(cls, value):
        if isinstance(value, bool):
            raise ValueError("amount must be a number")
        return value


# ============ HTTP responses ============

class PlayerResponse(BaseModel):
    player_id: str
    name: str
    profile: Optional[str] = None


class BetResponse(BaseModel):
    player_id: str
    amount: float
    pot: str
    asset: Optional[str] = None


class CurrentRoundResponse(BaseModel):
    state: LifecycleState
    round_id: Optional[str] = None
    time_remaining: Optional[float] = None
    participants: List[PlayerResponse] = []
    bets: List[BetResponse] = []


class ArchivedRoundResponse(BaseModel):
    round_id: str
    started_at: datetime
    ended_at: datetime
    winning_pot: str
    resolution_source: str
    participants: List[Dict[str, Any]]
    bets: List[Dict[str, Any]]
    winners: List[Dict[str, Any]]
