"""
彩池判定服務：決定回合的勝出彩池與贏家

判定順序：
1. 沒有任何下注 -> 不呼叫 oracle，直接在彩池集合中均勻隨機抽一個，贏家為空
2. 有下注 -> 呼叫外部 oracle，成功且標籤在集合內時以 oracle 為準
3. oracle 失敗、逾時、或回傳不合法標籤 -> 均勻隨機抽一個
4. 贏家 = 所有押中勝出彩池的下注，附上玩家目前的名稱與頭像（玩家已離線則為 None）

勝出彩池與各彩池的下注總額無關。
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from models import Bet, Player, ResolutionSource

logger = logging.getLogger(__name__)

Oracle = Callable[[], Awaitable[Tuple[Optional[str], bool]]]
PlayerLookup = Callable[[str], Optional[Player]]


@dataclass
class Resolution:
    winning_pot: str
    winners: List[Dict[str, Any]]
    source: ResolutionSource


class PotResolver:
    """勝出彩池判定器（random source 可注入，方便測試）"""

    def __init__(
        self,
        pot_labels: Sequence[str],
        oracle: Oracle,
        rng: Optional[random.Random] = None,
        oracle_timeout: float = 10.0,
    ):
        if not pot_labels:
            raise ValueError("pot_labels must not be empty")
        self.pot_labels = list(pot_labels)
        self._oracle = oracle
        self._rng = rng or random.Random()
        self._oracle_timeout = oracle_timeout

    def random_pot(self) -> str:
        return self._rng.choice(self.pot_labels)

    async def _ask_oracle(self) -> Optional[str]:
        """
        呼叫 oracle 取得權威的勝出彩池

        返回：
            合法的彩池標籤；任何失敗都返回 None
        """
        try:
            label, success = await asyncio.wait_for(self._oracle(), timeout=self._oracle_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Winning pot oracle timed out after {self._oracle_timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Winning pot oracle failed: {e}", exc_info=True)
            return None

        if not success:
            logger.warning("Winning pot oracle reported an unsuccessful status")
            return None
        if label not in self.pot_labels:
            logger.warning(f"Winning pot oracle returned unknown pot {label!r}")
            return None
        return label

    async def resolve(self, bets: Sequence[Bet], lookup_player: PlayerLookup) -> Resolution:
        """
        判定勝出彩池與贏家

        參數：
            bets: 回合的下注紀錄（可以是空的）
            lookup_player: 依 player_id 查詢目前在線玩家（可能回傳 None）

        返回：
            Resolution
        """
        if not bets:
            pot = self.random_pot()
            logger.info(f"No bets placed, drew pot {pot} at random")
            return Resolution(winning_pot=pot, winners=[], source=ResolutionSource.RANDOM)

        label = await self._ask_oracle()
        if label is not None:
            source = ResolutionSource.ORACLE
        else:
            label = self.random_pot()
            source = ResolutionSource.RANDOM
            logger.info(f"Falling back to random pot {label}")

        winners = [
            build_winner(bet, lookup_player(bet.player_id))
            for bet in bets
            if bet.pot == label
        ]
        return Resolution(winning_pot=label, winners=winners, source=source)


def build_winner(bet: Bet, player: Optional[Player]) -> Dict[str, Any]:
    return {
        "player_id": bet.player_id,
        "name": player.name if player else None,
        "profile": player.profile if player else None,
        "amount": bet.amount,
        "pot": bet.pot,
    }
