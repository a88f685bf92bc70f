"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層（HTTP / WebSocket）統一處理
"""


class BettingGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ Round 相關異常 ============

class NoActiveRound(BettingGameException):
    """目前沒有進行中的回合"""
    def __init__(self, message="No game is active."):
        super().__init__(message)


class RoundCreationFailed(BettingGameException):
    """外部服務無法產生回合 ID"""
    pass


class RoundNotFound(BettingGameException):
    """封存中找不到回合"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


class RoundAlreadyArchived(BettingGameException):
    """同一個 round_id 只能封存一次"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} is already archived")


# ============ Bet 相關異常 ============

class InvalidBet(BettingGameException):
    """下注內容不合法"""
    pass


class InvalidBetAmount(InvalidBet):
    """下注金額不是正數"""
    def __init__(self, message="Invalid bet amount."):
        super().__init__(message)


class UnknownPot(InvalidBet):
    """彩池標籤不在設定的集合內"""
    def __init__(self, pot):
        self.pot = pot
        super().__init__(f"Unknown pot: {pot}")


# ============ 外部服務異常 ============

class SettlementError(BettingGameException):
    """結算服務呼叫失敗（逾時、傳輸錯誤、回應格式錯誤）"""
    pass


# ============ 狀態轉換異常 ============

class InvalidStateTransition(BettingGameException):
    """非法的狀態轉換"""
    pass
