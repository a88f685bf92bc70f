"""
資料模型

- Player / Bet / Round：只存在於記憶體中的回合資料
- RoundArchive：已結束回合的封存（SQLAlchemy table）
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, String, JSON

from database import Base


class LifecycleState(str, enum.Enum):
    """回合生命週期狀態"""
    IDLE = "IDLE"
    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    RESOLVING = "RESOLVING"
    COOLDOWN = "COOLDOWN"


class ResolutionSource(str, enum.Enum):
    """勝出彩池的來源"""
    ORACLE = "ORACLE"
    RANDOM = "RANDOM"


@dataclass
class Player:
    """已連線的玩家（由 PlayerRegistry 獨佔持有）"""
    player_id: str
    name: str
    profile: Optional[str]
    connection_id: str

    def public_view(self) -> Dict[str, Any]:
        # 不包含 connection_id
        return {"player_id": self.player_id, "name": self.name, "profile": self.profile}


@dataclass(frozen=True)
class Bet:
    player_id: str
    amount: float
    pot: str
    asset: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "amount": self.amount,
            "pot": self.pot,
            "asset": self.asset,
        }


@dataclass
class Round:
    """
    一個下注回合

    participants 是玩家公開資訊的快照，不是 registry 的權威資料；
    bets 只能 append，回合結束時整批清除
    """
    round_id: str
    started_at: float
    started_at_wall: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    participants: List[Dict[str, Any]] = field(default_factory=list)
    bets: List[Bet] = field(default_factory=list)

    def add_participant(self, snapshot: Dict[str, Any]) -> bool:
        """加入參與者；已在名單中的玩家改為更新快照，返回是否為新參與者"""
        for index, existing in enumerate(self.participants):
            if existing["player_id"] == snapshot["player_id"]:
                self.participants[index] = dict(snapshot)
                return False
        self.participants.append(dict(snapshot))
        return True

    def remove_participant(self, player_id: str) -> None:
        self.participants = [p for p in self.participants if p["player_id"] != player_id]

    def bets_view(self) -> List[Dict[str, Any]]:
        return [bet.to_dict() for bet in list(self.bets)]


class RoundArchive(Base):
    """已結束的回合（寫入一次，以 round_id 為 key）"""
    __tablename__ = "archived_rounds"

    round_id = Column(String, primary_key=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=False)
    winning_pot = Column(String, nullable=False)
    resolution_source = Column(String, nullable=False)
    participants = Column(JSON, nullable=False, default=list)
    bets = Column(JSON, nullable=False, default=list)
    winners = Column(JSON, nullable=False, default=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_id": self.round_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "winning_pot": self.winning_pot,
            "resolution_source": self.resolution_source,
            "participants": self.participants,
            "bets": self.bets,
            "winners": self.winners,
        }
