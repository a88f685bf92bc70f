"""
派彩服務：彩池統計與結算回報內容

純計算邏輯，不改變回合狀態
"""
from typing import Any, Dict, List, Sequence

from models import Bet


def calculate_pot_totals(bets: Sequence[Bet], pot_labels: Sequence[str]) -> Dict[str, float]:
    """
    計算每個彩池的下注總額

    只用於 round_ended 的顯示，勝出彩池的判定不看這個數字。

    參數：
        bets: 回合的下注紀錄
        pot_labels: 彩池標籤集合

    返回：
        {pot: total}，沒有人下注的彩池為 0

    範例：
        P1 押 B 500、P2 押 A 200
        -> {"A": 200, "B": 500, "C": 0}
    """
    totals = {pot: 0.0 for pot in pot_labels}
    for bet in bets:
        totals[bet.pot] = totals.get(bet.pot, 0.0) + bet.amount
    return totals


def build_settlement_winners(winners: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    將贏家轉成結算服務需要的格式

    參數：
        winners: PotResolver 產生的贏家列表

    返回：
        [{"user_id": ..., "amount": ...}]，每筆押中的下注一筆
    """
    return [
        {"user_id": winner["player_id"], "amount": winner["amount"]}
        for winner in winners
    ]


def calculate_total_winnings(winners: Sequence[Dict[str, Any]]) -> Dict[str, float]:
    """
    依玩家彙總押中的金額

    用途：
        log 與回合摘要

    範例：
        [{P2, 200, A}, {P2, 50, A}] -> {"P2": 250}
    """
    totals: Dict[str, float] = {}
    for winner in winners:
        totals[winner["player_id"]] = totals.get(winner["player_id"], 0.0) + winner["amount"]
    return totals
