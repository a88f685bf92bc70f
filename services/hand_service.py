"""
牌型服務：為每個彩池發一手裝飾用的三張牌

這些牌只給前端顯示用，不影響勝出彩池的判定。
"""
import random
from typing import Dict, List, Optional, Sequence

RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
SUITS = ["S", "H", "D", "C"]
HAND_SIZE = 3


def build_deck() -> List[str]:
    """52 張牌，格式為 rank + suit（例如：AS, 10H, KC）"""
    return [f"{rank}{suit}" for suit in SUITS for rank in RANKS]


def deal_decorative_hands(
    pot_labels: Sequence[str],
    rng: Optional[random.Random] = None,
) -> Dict[str, List[str]]:
    """
    為每個彩池發一手三張牌

    邏輯：
    - 洗一副 52 張的牌
    - 依彩池順序每池發三張，同一局不會重複
    - 彩池數 * 3 > 52 時，重新洗一副新牌繼續發

    參數：
        pot_labels: 彩池標籤集合
        rng: random source（測試時可以固定 seed）

    返回：
        {pot: [card, card, card]}
    """
    rng = rng or random.Random()
    deck = build_deck()
    rng.shuffle(deck)

    hands: Dict[str, List[str]] = {}
    for pot in pot_labels:
        if len(deck) < HAND_SIZE:
            deck = build_deck()
            rng.shuffle(deck)
        hands[pot] = [deck.pop() for _ in range(HAND_SIZE)]
    return hands
