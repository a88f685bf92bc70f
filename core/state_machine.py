"""
狀態機：集中管理回合生命週期的所有狀態轉換

    IDLE -> CREATING -> ACTIVE -> RESOLVING -> COOLDOWN
      ^        |                                  |
      +--------+------------- IDLE / CREATING <---+

任何不在 TRANSITIONS 內的轉換都會拋出 InvalidStateTransition，
呼叫者不應該自行修改 state。
"""
import logging

from models import LifecycleState
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


TRANSITIONS = {
    LifecycleState.IDLE: {LifecycleState.CREATING},
    LifecycleState.CREATING: {LifecycleState.IDLE, LifecycleState.ACTIVE},
    LifecycleState.ACTIVE: {LifecycleState.RESOLVING},
    LifecycleState.RESOLVING: {LifecycleState.COOLDOWN},
    LifecycleState.COOLDOWN: {LifecycleState.CREATING, LifecycleState.IDLE},
}


class LifecycleStateMachine:
    """回合生命週期狀態機"""

    def __init__(self, initial: LifecycleState = LifecycleState.IDLE):
        self._state = initial

    @property
    def state(self) -> LifecycleState:
        return self._state

    def can_transition(self, new_state: LifecycleState) -> bool:
        return new_state in TRANSITIONS[self._state]

    def transition(self, new_state: LifecycleState) -> LifecycleState:
        """
        執行狀態轉換

        參數：
            new_state: 目標狀態

        返回：
            轉換前的狀態

        異常：
            InvalidStateTransition: 目前狀態不允許轉換到 new_state
        """
        old_state = self._state
        if not self.can_transition(new_state):
            raise InvalidStateTransition(
                f"Cannot transition from {old_state.value} to {new_state.value}"
            )
        self._state = new_state
        logger.info(f"Lifecycle state {old_state.value} -> {new_state.value}")
        return old_state
