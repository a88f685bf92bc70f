from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 回合設定（單位：秒）
    round_duration: float = 30.0
    cooldown_delay: float = 5.0
    pot_labels: List[str] = ["A", "B", "C"]

    # 外部結算服務
    settlement_base_url: str = "http://localhost:8080/api"
    settlement_timeout: float = 10.0

    # 單一 WebSocket send 的上限（秒），逾時的連線會被移除
    send_timeout: float = 5.0
    game_name: str = "Teen Patti"
    game_description: str = "A thrilling card game."

    # 回合封存（預設為 in-memory SQLite，重啟後不保留）
    database_url: str = "sqlite://"
    history_limit: int = 20

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
