"""
並發控制工具

回合的所有變更都在同一個 event loop 上執行，並由 RoundLifecycle 的
asyncio.Lock 串行化。CreationGuard 則是「建立回合」這個動作本身的互斥旗標：

- check-and-set 之間沒有 await，所以在 event loop 內是原子的
- 旗標已被設定時，呼叫者直接放棄（不排隊、不重試）
- 不論成功、失敗或拋出異常，離開 context 時一律清除旗標
"""
from contextlib import contextmanager
from typing import Iterator
import logging

logger = logging.getLogger(__name__)


class CreationGuard:
    """回合建立的 in-flight 旗標"""

    def __init__(self):
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @contextmanager
    def attempt(self) -> Iterator[bool]:
        """
        嘗試取得「建立中」的鎖

        範例：
            with guard.attempt() as acquired:
                if not acquired:
                    return None
                round_id = await mint(...)

        返回：
            True 表示取得鎖，可以呼叫 mint；False 表示已有建立動作在進行
        """
        if self._in_flight:
            logger.info("Round creation already in flight, skipping attempt")
            yield False
            return

        self._in_flight = True
        try:
            yield True
        finally:
            self._in_flight = False
