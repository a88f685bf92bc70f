"""
命名服務：為沒有提供名稱的玩家生成顯示名稱

純計算邏輯，不涉及狀態轉換
"""
import random
import string
from typing import Optional


def generate_guest_name(rng: Optional[random.Random] = None) -> str:
    """
    生成訪客名稱

    格式：「Guest-XXXX」（4 位大寫字母）

    注意：
    - 不檢查唯一性，名稱只用於顯示，身分以 player_id 為準
    """
    rng = rng or random
    return "Guest-" + ''.join(rng.choices(string.ascii_uppercase, k=4))


def resolve_display_name(name: Optional[str], rng: Optional[random.Random] = None) -> str:
    """
    取得玩家的顯示名稱

    參數：
        name: 客戶端送來的名稱（可能是 None 或空白）

    返回：
        去除前後空白的名稱；空的時候生成訪客名稱
    """
    if name and name.strip():
        return name.strip()
    return generate_guest_name(rng)
